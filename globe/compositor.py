"""Painter's-order scene composition onto a Pillow image."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .common import BoundaryGeometry, GeoPoint, ViewState
from .context import RenderContext
from .overlay import ColorMap, visible_samples
from .projection import graticule_lines, project, project_ring

LOGGER = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]


def _hex_to_rgba(value: str, alpha: int = 255) -> RGBA:
    value = value.lstrip('#')
    if len(value) == 8:
        alpha = int(value[6:8], 16)
        value = value[:6]
    if len(value) != 6:
        raise ValueError(f"Expected hex color RRGGBB or RRGGBBAA, got {value!r}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16), alpha)


@dataclass
class GlobeStyle:
    background: RGBA = _hex_to_rgba('#001b2e')
    sphere_fill: RGBA = _hex_to_rgba('#0d2b45', 160)
    sphere_outline: RGBA = _hex_to_rgba('#1f8ef1')
    graticule: RGBA = _hex_to_rgba('#ffffff', 90)
    region_fill: RGBA = _hex_to_rgba('#90EE9005')
    border: RGBA = _hex_to_rgba('#444444')
    coastline: RGBA = _hex_to_rgba('#ffffff')
    marker_fill: RGBA = _hex_to_rgba('#ff0000')
    marker_outline: RGBA = _hex_to_rgba('#ffffff')
    line_width: int = 1
    marker_radius: float = 5.0
    marker_outline_width: int = 2
    graticule_major_step: float = 90.0
    graticule_minor_step: float = 45.0


class SceneCompositor:
    """Draws one frame from a render context without touching it.

    Layers go back to front: sphere, graticule, aurora, region wash,
    interior borders, coastlines, user marker. A layer whose data is
    missing is skipped, so a half-loaded context still yields a globe.
    """

    def __init__(self, style: GlobeStyle | None = None, colormap: ColorMap | None = None) -> None:
        self.style = style or GlobeStyle()
        self.colormap = colormap or ColorMap.plasma()
        self._graticule = graticule_lines(self.style.graticule_major_step, self.style.graticule_minor_step)

    def compose(self, context: RenderContext) -> Image.Image:
        width, height = context.surface_size
        image = Image.new("RGB", (max(1, int(width)), max(1, int(height))), self.style.background[:3])
        draw = ImageDraw.Draw(image, "RGBA")
        view = context.view

        self._draw_sphere(draw, view)
        self._draw_lines(draw, self._graticule, view, self.style.graticule)
        if context.show_aurora:
            self._draw_aurora(draw, context)
        self._draw_boundaries(draw, view, context.boundaries)
        if context.show_location and context.user_location is not None:
            self._draw_user_location(draw, view, context.user_location)
        return image

    def _draw_sphere(self, draw: ImageDraw.ImageDraw, view: ViewState) -> None:
        cx, cy = view.translate
        r = view.scale
        box = [cx - r, cy - r, cx + r, cy + r]
        draw.ellipse(box, fill=self.style.sphere_fill)
        draw.ellipse(box, outline=self.style.sphere_outline, width=self.style.line_width)

    def _draw_aurora(self, draw: ImageDraw.ImageDraw, context: RenderContext) -> None:
        if not len(context.aurora):
            return
        count = 0
        for marker in visible_samples(context.aurora, context.view, context.surface_size, self.colormap):
            x, y = marker.screen.x, marker.screen.y
            r = marker.radius
            draw.ellipse([x - r, y - r, x + r, y + r], fill=(*marker.color, int(round(marker.alpha * 255))))
            count += 1
        LOGGER.debug("Drew %d aurora markers", count)

    def _draw_boundaries(self, draw: ImageDraw.ImageDraw, view: ViewState, geometry: BoundaryGeometry) -> None:
        if geometry.regions:
            self._fill_rings(draw, geometry.regions, view, self.style.region_fill)
        if geometry.borders:
            self._draw_lines(draw, geometry.borders, view, self.style.border)
        if geometry.coastlines:
            self._draw_lines(draw, geometry.coastlines, view, self.style.coastline)

    def _draw_user_location(self, draw: ImageDraw.ImageDraw, view: ViewState, location: GeoPoint) -> None:
        point = project(location, view)
        if point is None:
            return
        r = self.style.marker_radius
        draw.ellipse(
            [point.x - r, point.y - r, point.x + r, point.y + r],
            fill=self.style.marker_fill,
            outline=self.style.marker_outline,
            width=self.style.marker_outline_width,
        )

    def _fill_rings(self, draw: ImageDraw.ImageDraw, rings: Iterable[np.ndarray], view: ViewState, color: RGBA) -> None:
        for polygon in self._project_all(rings, view, closed=True):
            if len(polygon) >= 3:
                draw.polygon(polygon.ravel().tolist(), fill=color)

    def _draw_lines(
        self,
        draw: ImageDraw.ImageDraw,
        lines: Iterable[np.ndarray],
        view: ViewState,
        color: RGBA,
    ) -> None:
        # strokes break where a path dips behind the globe, closed or not
        for run in self._project_all(lines, view, closed=False):
            draw.line(run.ravel().tolist(), fill=color, width=self.style.line_width)

    @staticmethod
    def _project_all(paths: Iterable[np.ndarray], view: ViewState, *, closed: bool) -> List[np.ndarray]:
        projected: List[np.ndarray] = []
        for path in paths:
            try:
                projected.extend(project_ring(path, view, closed=closed))
            except (TypeError, ValueError) as exc:
                LOGGER.debug("Skipping malformed path: %s", exc)
        return projected

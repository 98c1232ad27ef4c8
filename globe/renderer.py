from __future__ import annotations

import logging
from typing import Callable, Optional

from PIL import Image

from .common import (
    GLOBE_MARGIN,
    MAX_SCALE,
    MIN_SCALE,
    AuroraSnapshot,
    BoundaryGeometry,
    GeoPoint,
    ViewState,
)
from .compositor import GlobeStyle, SceneCompositor
from .context import RenderContext
from .gestures import GestureController
from .projection import rotation_for_center
from .rotation import RotationModel
from .scheduler import RenderScheduler

LOGGER = logging.getLogger(__name__)


class GlobeRenderer:
    """Owns the render context and exposes the globe to a host window.

    The host forwards input to :attr:`gestures`, calls :meth:`tick` on every
    display refresh while :attr:`scheduler` is running and shows whatever
    image :meth:`tick` returns.
    """

    def __init__(
        self,
        width: int,
        height: int,
        *,
        style: GlobeStyle | None = None,
        min_scale: float = MIN_SCALE,
        max_scale: float = MAX_SCALE,
        margin: float = GLOBE_MARGIN,
        on_frame_request: Optional[Callable[[], None]] = None,
    ) -> None:
        if min_scale <= 0 or max_scale < min_scale:
            raise ValueError(f"Invalid scale range [{min_scale}, {max_scale}]")
        self._margin = margin
        self.context = RenderContext(min_scale=min_scale, max_scale=max_scale)
        self.compositor = SceneCompositor(style)
        self.scheduler = RenderScheduler(self.context, self._draw, on_start=on_frame_request)
        self.rotation = RotationModel(lambda: self.context.view.rotation)
        self.gestures = GestureController(self.context, self.scheduler, rotation=self.rotation)
        self._last_frame: Image.Image | None = None
        self.resize(width, height)

    @property
    def view(self) -> ViewState:
        return self.context.view

    @property
    def last_frame(self) -> Image.Image | None:
        return self._last_frame

    def tick(self) -> Image.Image | None:
        """One refresh; returns the new frame or ``None`` when nothing changed."""
        if self.scheduler.tick():
            return self._last_frame
        return None

    def render_now(self) -> Image.Image:
        """Composite immediately, outside the loop (exports, screenshots)."""
        return self.compositor.compose(self.context)

    def resize(self, width: int, height: int) -> None:
        width, height = max(1, int(width)), max(1, int(height))
        ctx = self.context
        ctx.surface_size = (width, height)
        ctx.view = ViewState.for_surface(
            width,
            height,
            rotation=ctx.view.rotation,
            margin=self._margin,
            min_scale=ctx.min_scale,
            max_scale=ctx.max_scale,
        )
        self.scheduler.request_render()

    def load_aurora(self, snapshot: AuroraSnapshot) -> None:
        self.context.aurora = snapshot
        LOGGER.info("Aurora snapshot with %d samples (forecast %s)", len(snapshot), snapshot.forecast_time or "?")
        self.scheduler.request_render()

    def load_boundaries(self, geometry: BoundaryGeometry) -> None:
        self.context.boundaries = geometry
        LOGGER.info(
            "Boundaries: %d regions, %d borders, %d coastlines",
            len(geometry.regions),
            len(geometry.borders),
            len(geometry.coastlines),
        )
        self.scheduler.request_render()

    def set_user_location(self, location: GeoPoint | None, *, center: bool = True) -> None:
        self.context.user_location = location
        if location is not None and center:
            self.center_on(location)
        else:
            self.scheduler.request_render()

    def center_on(self, point: GeoPoint) -> None:
        self.context.view = self.context.view.with_rotation(rotation_for_center(point.lon, point.lat))
        self.scheduler.request_render()

    def reset_view(self) -> None:
        if self.context.user_location is not None:
            self.center_on(self.context.user_location)
            return
        self.context.view = self.context.view.with_rotation((0.0, 0.0, 0.0))
        self.scheduler.request_render()

    def set_show_location(self, enabled: bool) -> None:
        if self.context.show_location == bool(enabled):
            return
        self.context.show_location = bool(enabled)
        self.scheduler.request_render()

    def set_show_aurora(self, enabled: bool) -> None:
        if self.context.show_aurora == bool(enabled):
            return
        self.context.show_aurora = bool(enabled)
        self.scheduler.request_render()

    def _draw(self) -> None:
        self._last_frame = self.compositor.compose(self.context)

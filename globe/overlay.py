"""Aurora overlay: hemisphere culling and colour mapping of forecast samples."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple, Union

import numpy as np
from PIL import Image

from .common import AuroraSample, AuroraSnapshot, ScreenPoint, ViewState, geo_distance
from .projection import project_many, view_center

INTENSITY_MAX = 100.0
MARKER_RADIUS_DIVISOR = 100.0


@dataclass
class ColorMap:
    """Piecewise-linear colour scale over [0, 1]."""
    name: str
    colors: List[Tuple[float, float, float]]  # RGB values 0-1
    positions: List[float]  # Positions 0-1

    @classmethod
    def plasma(cls) -> "ColorMap":
        """Perceptually uniform dark blue -> magenta -> yellow."""
        hex_stops = [
            "0d0887", "41049d", "6a00a8", "8f0da4", "b12a90", "cc4778",
            "e16462", "f2844b", "fca636", "fcce25", "f0f921",
        ]
        return cls(
            name="plasma",
            colors=[_hex_to_unit_rgb(h) for h in hex_stops],
            positions=[i / (len(hex_stops) - 1) for i in range(len(hex_stops))],
        )

    def get_color(self, t: float) -> Tuple[float, float, float]:
        r, g, b = self.sample(np.asarray([t], dtype=np.float64))[0]
        return (float(r), float(g), float(b))

    def sample(self, t: np.ndarray) -> np.ndarray:
        """Vectorized lookup, returns (N, 3) RGB in 0-1."""
        values = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
        colors = np.asarray(self.colors, dtype=np.float64)
        return np.column_stack([np.interp(values, self.positions, colors[:, c]) for c in range(3)])

    def rgb255(self, t: np.ndarray) -> np.ndarray:
        return np.rint(self.sample(t) * 255.0).astype(np.uint8)


@dataclass(frozen=True)
class OverlayMarker:
    screen: ScreenPoint
    color: Tuple[int, int, int]
    alpha: float
    radius: float


SampleSource = Union[AuroraSnapshot, np.ndarray, Iterable[AuroraSample]]


def as_sample_array(samples: SampleSource) -> np.ndarray:
    if isinstance(samples, AuroraSnapshot):
        return samples.coordinates
    if isinstance(samples, np.ndarray):
        return samples.reshape(-1, samples.shape[-1])[:, :3] if samples.size else np.zeros((0, 3))
    rows = [(s.point.lon, s.point.lat, s.intensity) for s in samples]
    return np.asarray(rows, dtype=np.float64).reshape(-1, 3)


def marker_radius(surface_size: Tuple[int, int]) -> float:
    width, height = surface_size
    return min(width, height) / MARKER_RADIUS_DIVISOR


def visible_samples(
    samples: SampleSource,
    view: ViewState,
    surface_size: Tuple[int, int],
    colormap: ColorMap | None = None,
) -> Iterator[OverlayMarker]:
    """Markers for the samples that face the viewer, recomputed on every call.

    The hemisphere test compares each sample against the single geographic
    point at the middle of the disk; projection afterwards still drops
    anything that lands exactly on the silhouette.
    """
    coords = as_sample_array(samples)
    if coords.size == 0:
        return
    cmap = colormap or ColorMap.plasma()
    lon, lat, intensity = coords[:, 0], coords[:, 1], coords[:, 2]
    center = view_center(view)
    keep = intensity > 0.0
    keep &= geo_distance(lon, lat, center.lon, center.lat) < np.pi / 2.0
    if not keep.any():
        return
    lon, lat, intensity = lon[keep], lat[keep], intensity[keep]
    x, y, on_front = project_many(lon, lat, view)
    norm = np.clip(intensity / INTENSITY_MAX, 0.0, 1.0)
    colors = cmap.rgb255(norm)
    radius = marker_radius(surface_size)
    for i in np.flatnonzero(on_front):
        r, g, b = colors[i]
        yield OverlayMarker(
            screen=ScreenPoint(float(x[i]), float(y[i])),
            color=(int(r), int(g), int(b)),
            alpha=float(norm[i]),
            radius=radius,
        )


def colorbar_image(colormap: ColorMap | None = None, *, width: int = 20, height: int = 200) -> Image.Image:
    """Vertical gradient strip, maximum intensity at the top."""
    cmap = colormap or ColorMap.plasma()
    t = np.linspace(1.0, 0.0, max(1, height))
    column = cmap.rgb255(t)
    rgb = np.repeat(column[:, np.newaxis, :], max(1, width), axis=1)
    return Image.fromarray(rgb)


def _hex_to_unit_rgb(value: str) -> Tuple[float, float, float]:
    value = value.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Expected hex color RRGGBB, got {value!r}")
    return (int(value[0:2], 16) / 255.0, int(value[2:4], 16) / 255.0, int(value[4:6], 16) / 255.0)

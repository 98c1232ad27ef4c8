from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterator, Optional, Tuple

import numpy as np

MIN_SCALE = 100.0
MAX_SCALE = 5000.0
GLOBE_MARGIN = 10.0

Rotation = Tuple[float, float, float]  # (yaw, pitch, roll) degrees


@dataclass(frozen=True)
class GeoPoint:
    """Geographic coordinate expressed in degrees."""

    lon: float
    lat: float

    def validate(self) -> None:
        if not (math.isfinite(self.lon) and math.isfinite(self.lat)):
            raise ValueError("Coordinates must be finite numbers")
        if self.lon < -180.0 or self.lon > 180.0:
            raise ValueError(f"Longitude {self.lon} must lie within [-180, 180]")
        if self.lat < -90.0 or self.lat > 90.0:
            raise ValueError(f"Latitude {self.lat} must lie within [-90, 90]")

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


@dataclass(frozen=True)
class ScreenPoint:
    """Pixel position on the drawing surface, y grows downward."""

    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


def clamp_scale(value: float, min_scale: float = MIN_SCALE, max_scale: float = MAX_SCALE) -> float:
    return float(min(max(value, min_scale), max_scale))


@dataclass(frozen=True)
class ViewState:
    """Orientation, zoom and placement of the globe.

    Instances are never mutated; the renderer swaps in a new one for every
    committed change so a frame always sees a consistent view.
    """

    rotation: Rotation = (0.0, 0.0, 0.0)
    scale: float = 250.0
    translate: Tuple[float, float] = (0.0, 0.0)

    def with_rotation(self, rotation: Rotation) -> "ViewState":
        yaw, pitch, roll = rotation
        return replace(self, rotation=(float(yaw), float(pitch), float(roll)))

    def with_scale(self, scale: float, min_scale: float = MIN_SCALE, max_scale: float = MAX_SCALE) -> "ViewState":
        return replace(self, scale=clamp_scale(scale, min_scale, max_scale))

    def with_translate(self, x: float, y: float) -> "ViewState":
        return replace(self, translate=(float(x), float(y)))

    @classmethod
    def for_surface(
        cls,
        width: int,
        height: int,
        *,
        rotation: Rotation = (0.0, 0.0, 0.0),
        margin: float = GLOBE_MARGIN,
        min_scale: float = MIN_SCALE,
        max_scale: float = MAX_SCALE,
    ) -> "ViewState":
        if width <= 0 or height <= 0:
            raise ValueError("Surface dimensions must be positive")
        scale = clamp_scale(min(width, height) / 2.0 - margin, min_scale, max_scale)
        return cls(rotation=rotation, scale=scale, translate=(width / 2.0, height / 2.0))


@dataclass(frozen=True)
class AuroraSample:
    point: GeoPoint
    intensity: float


@dataclass(frozen=True, eq=False)
class AuroraSnapshot:
    """One forecast as delivered by the feed, replaced wholesale on reload."""

    coordinates: np.ndarray  # (N, 3) lon, lat, intensity
    observation_time: str = ""
    forecast_time: str = ""

    def __post_init__(self) -> None:
        coords = np.asarray(self.coordinates, dtype=np.float64).reshape(-1, 3)
        coords.setflags(write=False)
        object.__setattr__(self, "coordinates", coords)

    def __len__(self) -> int:
        return int(self.coordinates.shape[0])

    def samples(self) -> Iterator[AuroraSample]:
        for lon, lat, intensity in self.coordinates:
            yield AuroraSample(point=GeoPoint(float(lon), float(lat)), intensity=float(intensity))

    @property
    def peak_intensity(self) -> float:
        if not len(self):
            return 0.0
        return float(self.coordinates[:, 2].max())

    @classmethod
    def empty(cls) -> "AuroraSnapshot":
        return cls(coordinates=np.zeros((0, 3), dtype=np.float64))


@dataclass(frozen=True, eq=False)
class BoundaryGeometry:
    """Country rings, interior border lines and land outlines (lon/lat arrays)."""

    regions: Tuple[np.ndarray, ...] = ()
    borders: Tuple[np.ndarray, ...] = ()
    coastlines: Tuple[np.ndarray, ...] = ()

    @classmethod
    def empty(cls) -> "BoundaryGeometry":
        return cls()

    def is_empty(self) -> bool:
        return not (self.regions or self.borders or self.coastlines)


def wrap_longitude(lon):
    """Wrap degrees into [-180, 180). Accepts scalars or arrays."""
    return ((lon + 180.0) % 360.0) - 180.0


def geo_distance(lon0, lat0, lon1, lat1):
    """Great-circle distance in radians (haversine). Accepts scalars or arrays."""
    lam0 = np.radians(lon0)
    phi0 = np.radians(lat0)
    lam1 = np.radians(lon1)
    phi1 = np.radians(lat1)
    sin_dphi = np.sin((phi1 - phi0) / 2.0)
    sin_dlam = np.sin((lam1 - lam0) / 2.0)
    h = sin_dphi * sin_dphi + np.cos(phi0) * np.cos(phi1) * sin_dlam * sin_dlam
    return 2.0 * np.arcsin(np.sqrt(np.clip(h, 0.0, 1.0)))


def parse_location_string(text: str) -> Optional[GeoPoint]:
    cleaned = text.strip()
    if not cleaned:
        return None
    parts = cleaned.replace(";", ",").split(",")
    if len(parts) != 2:
        return None
    try:
        lon, lat = (float(p.strip()) for p in parts)
    except ValueError:
        return None
    point = GeoPoint(lon=lon, lat=lat)
    try:
        point.validate()
    except ValueError:
        return None
    return point

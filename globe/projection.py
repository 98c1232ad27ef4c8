"""Orthographic projection of the globe onto the drawing surface.

The globe is a unit sphere. A geographic point is turned into a cartesian
vector, rotated by the view (yaw about the polar axis, then pitch, then
roll) and dropped onto the screen plane. After rotation the x component
points at the viewer, so a point is drawable only while it stays positive.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .common import GeoPoint, Rotation, ScreenPoint, ViewState

# cos(90 deg) evaluates to ~6e-17, so the silhouette needs an explicit margin
VISIBILITY_EPSILON = 1e-12
SILHOUETTE_TOLERANCE = 1e-12


def rotation_matrix(rotation: Rotation) -> np.ndarray:
    yaw, pitch, roll = (math.radians(a) for a in rotation)
    cl, sl = math.cos(yaw), math.sin(yaw)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cg, sg = math.cos(roll), math.sin(roll)
    yaw_m = np.asarray([
        [cl, -sl, 0.0],
        [sl, cl, 0.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)
    pitch_m = np.asarray([
        [cp, 0.0, -sp],
        [0.0, 1.0, 0.0],
        [sp, 0.0, cp],
    ], dtype=np.float64)
    roll_m = np.asarray([
        [1.0, 0.0, 0.0],
        [0.0, cg, -sg],
        [0.0, sg, cg],
    ], dtype=np.float64)
    return roll_m @ pitch_m @ yaw_m


def cartesian(lon, lat) -> np.ndarray:
    """Unit vectors for lon/lat in degrees; scalars give shape (3,), arrays (..., 3)."""
    lam = np.radians(lon)
    phi = np.radians(lat)
    cos_phi = np.cos(phi)
    return np.stack((cos_phi * np.cos(lam), cos_phi * np.sin(lam), np.sin(phi)), axis=-1)


def spherical(vectors: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    v = np.asarray(vectors, dtype=np.float64)
    lon = np.degrees(np.arctan2(v[..., 1], v[..., 0]))
    lat = np.degrees(np.arcsin(np.clip(v[..., 2], -1.0, 1.0)))
    return lon, lat


def project(geo: GeoPoint, view: ViewState) -> Optional[ScreenPoint]:
    """Screen position of ``geo`` or ``None`` when it faces away from the viewer."""
    x, y, visible = project_many(geo.lon, geo.lat, view)
    if not bool(visible):
        return None
    return ScreenPoint(float(x), float(y))


def unproject(screen: ScreenPoint, view: ViewState) -> Optional[GeoPoint]:
    """Geographic point under ``screen`` on the visible hemisphere.

    Returns ``None`` for positions outside the silhouette circle.
    """
    vector = unproject_vector(screen, view)
    if vector is None:
        return None
    lon, lat = spherical(vector)
    return GeoPoint(float(lon), float(lat))


def unproject_vector(screen: ScreenPoint, view: ViewState) -> Optional[np.ndarray]:
    tx, ty = view.translate
    k = view.scale
    if k <= 0:
        return None
    sy = (screen.x - tx) / k
    sz = (ty - screen.y) / k
    r2 = sy * sy + sz * sz
    if r2 > 1.0 + SILHOUETTE_TOLERANCE:
        return None
    depth = math.sqrt(max(0.0, 1.0 - r2))
    rotated = np.asarray((depth, sy, sz), dtype=np.float64)
    # inverse of an orthonormal rotation is its transpose
    return rotated @ rotation_matrix(view.rotation)


def project_many(lon, lat, view: ViewState) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized projection returning ``(x, y, visible)`` arrays."""
    rotated = cartesian(lon, lat) @ rotation_matrix(view.rotation).T
    return _to_screen(rotated, view)


def view_center(view: ViewState) -> GeoPoint:
    center = unproject(ScreenPoint(*view.translate), view)
    if center is None:
        raise ValueError(f"View scale must be positive, got {view.scale}")
    return center


def rotation_for_center(lon: float, lat: float) -> Rotation:
    """Rotation that brings (lon, lat) to the middle of the disk."""
    return (-float(lon), -float(lat), 0.0)


def project_ring(coords: Sequence[Sequence[float]] | np.ndarray, view: ViewState, *, closed: bool) -> List[np.ndarray]:
    """Project a lon/lat path, clipped to the visible hemisphere.

    Open paths come back as one screen polyline per visible run, each run
    ending exactly on the silhouette where it crosses the horizon. Closed
    rings come back as a single polygon whose hidden stretch is pushed out
    onto the silhouette, which keeps fills closed and inside the disk.
    """
    points = np.asarray(coords, dtype=np.float64)
    if points.ndim != 2 or points.shape[0] < 2 or points.shape[1] < 2:
        return []
    rotated = cartesian(points[:, 0], points[:, 1]) @ rotation_matrix(view.rotation).T
    depth = rotated[:, 0]
    visible = depth > VISIBILITY_EPSILON
    if visible.all():
        x, y, _ = _to_screen(rotated, view)
        return [np.column_stack((x, y))]
    if not visible.any():
        return []
    if closed:
        return _clip_closed(rotated, visible, view)
    return _clip_open(rotated, visible, view)


def graticule_lines(major_step: float = 90.0, minor_step: float = 45.0, *, precision: float = 2.5) -> List[np.ndarray]:
    """Meridians and parallels as lon/lat polylines.

    Major meridians run pole to pole, minor ones stop at +/-80 degrees so
    the poles do not clutter.
    """
    lines: List[np.ndarray] = []
    lats_major = np.arange(-90.0, 90.0 + precision / 2, precision)
    lats_minor = np.arange(-80.0, 80.0 + precision / 2, precision)
    for lon in np.arange(-180.0, 180.0, minor_step):
        lats = lats_major if _is_multiple(lon, major_step) else lats_minor
        lines.append(np.column_stack((np.full_like(lats, lon), lats)))
    lons = np.arange(-180.0, 180.0 + precision / 2, precision)
    for lat in np.arange(-90.0 + minor_step, 90.0, minor_step):
        lines.append(np.column_stack((lons, np.full_like(lons, lat))))
    return lines


def _is_multiple(value: float, step: float) -> bool:
    return step > 0 and abs(math.remainder(value, step)) < 1e-9


def _to_screen(rotated: np.ndarray, view: ViewState) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    tx, ty = view.translate
    k = view.scale
    x = tx + k * rotated[..., 1]
    y = ty - k * rotated[..., 2]
    visible = rotated[..., 0] > VISIBILITY_EPSILON
    return x, y, visible


def _horizon_point(a: np.ndarray, b: np.ndarray) -> Optional[np.ndarray]:
    """Where the segment a->b (rotated vectors) crosses the horizon plane."""
    da, db = a[0], b[0]
    if da == db:
        return None
    t = da / (da - db)
    p = a + t * (b - a)
    return _limb(p)


def _limb(p: np.ndarray) -> Optional[np.ndarray]:
    norm = math.hypot(p[1], p[2])
    if norm < 1e-12:
        return None
    return np.asarray((0.0, p[1] / norm, p[2] / norm), dtype=np.float64)


def _clip_open(rotated: np.ndarray, visible: np.ndarray, view: ViewState) -> List[np.ndarray]:
    runs: List[np.ndarray] = []
    current: List[np.ndarray] = []
    for i in range(len(rotated)):
        if i > 0 and visible[i] != visible[i - 1]:
            crossing = _horizon_point(rotated[i - 1], rotated[i])
            if crossing is not None:
                current.append(crossing)
            if not visible[i]:
                runs.append(_finish_run(current, view))
                current = []
        if visible[i]:
            current.append(rotated[i])
    if current:
        runs.append(_finish_run(current, view))
    return [run for run in runs if len(run) >= 2]


def _clip_closed(rotated: np.ndarray, visible: np.ndarray, view: ViewState) -> List[np.ndarray]:
    outline: List[np.ndarray] = []
    for i in range(len(rotated)):
        if i > 0 and visible[i] != visible[i - 1]:
            crossing = _horizon_point(rotated[i - 1], rotated[i])
            if crossing is not None:
                outline.append(crossing)
        if visible[i]:
            outline.append(rotated[i])
        else:
            limb = _limb(rotated[i])
            if limb is not None:
                outline.append(limb)
    if len(outline) < 3:
        return []
    return [_finish_run(outline, view)]


def _finish_run(points: List[np.ndarray], view: ViewState) -> np.ndarray:
    stacked = np.vstack(points)
    x, y, _ = _to_screen(stacked, view)
    return np.column_stack((x, y))

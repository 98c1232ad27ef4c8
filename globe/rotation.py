"""Drag rotation built on versors (unit quaternions).

Orientation is stored as (yaw, pitch, roll) Euler angles because that is
what the projection consumes, but drags are composed as quaternions so a
long continuous drag never hits gimbal lock.
"""
from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

import numpy as np

from .common import GeoPoint, Rotation
from .projection import cartesian as _cartesian

Versor = np.ndarray  # (w, x, y, z)

IDENTITY_VERSOR = np.asarray((1.0, 0.0, 0.0, 0.0), dtype=np.float64)


def versor(rotation: Rotation) -> Versor:
    yaw, pitch, roll = (math.radians(a) / 2.0 for a in rotation)
    sl, cl = math.sin(yaw), math.cos(yaw)
    sp, cp = math.sin(pitch), math.cos(pitch)
    sg, cg = math.sin(roll), math.cos(roll)
    return np.asarray((
        cl * cp * cg + sl * sp * sg,
        sl * cp * cg - cl * sp * sg,
        cl * sp * cg + sl * cp * sg,
        cl * cp * sg - sl * sp * cg,
    ), dtype=np.float64)


def versor_rotation(q: Versor) -> Rotation:
    w, x, y, z = (float(c) for c in q)
    return (
        math.degrees(math.atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))),
        math.degrees(math.asin(max(-1.0, min(1.0, 2.0 * (w * y - z * x))))),
        math.degrees(math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))),
    )


def versor_multiply(a: Versor, b: Versor) -> Versor:
    a0, a1, a2, a3 = a
    b0, b1, b2, b3 = b
    return np.asarray((
        a0 * b0 - a1 * b1 - a2 * b2 - a3 * b3,
        a0 * b1 + a1 * b0 + a2 * b3 - a3 * b2,
        a0 * b2 - a1 * b3 + a2 * b0 + a3 * b1,
        a0 * b3 + a1 * b2 - a2 * b1 + a3 * b0,
    ), dtype=np.float64)


def versor_delta(v0: Sequence[float], v1: Sequence[float], alpha: float = 1.0) -> Versor:
    """Versor turning unit vector ``v0`` onto ``v1`` (``alpha`` scales the angle)."""
    a = np.asarray(v0, dtype=np.float64)
    b = np.asarray(v1, dtype=np.float64)
    w = np.cross(a, b)
    length = float(np.sqrt(np.dot(w, w)))
    if not length:
        return IDENTITY_VERSOR.copy()
    t = alpha * math.acos(max(-1.0, min(1.0, float(np.dot(a, b))))) / 2.0
    s = math.sin(t)
    # axis components follow the projection's (depth, east, north) frame
    return np.asarray((math.cos(t), w[2] / length * s, -w[1] / length * s, w[0] / length * s), dtype=np.float64)


def cartesian(point: GeoPoint) -> np.ndarray:
    return np.asarray(_cartesian(point.lon, point.lat), dtype=np.float64)


def compose_from_pointer_delta(
    anchor_vector: Sequence[float],
    new_vector: Sequence[float],
    anchor_rotation: Rotation,
) -> Rotation:
    """Rotation that carries the sphere point under the anchor to ``new_vector``.

    Both vectors must be sphere-surface vectors taken under
    ``anchor_rotation``; the result is always derived from the fixed anchor,
    so bringing the pointer back to where the drag started gives back
    ``anchor_rotation`` exactly.
    """
    delta = versor_delta(anchor_vector, new_vector)
    if np.array_equal(delta, IDENTITY_VERSOR):
        return tuple(float(a) for a in anchor_rotation)  # type: ignore[return-value]
    q1 = versor_multiply(versor(anchor_rotation), delta)
    return versor_rotation(q1)


class RotationModel:
    """Reads the live orientation and turns drags into new orientations."""

    def __init__(self, current: Callable[[], Rotation]) -> None:
        self._current = current

    def current_rotation(self) -> Rotation:
        return self._current()

    def compose_from_pointer_delta(
        self,
        anchor_vector: Sequence[float],
        new_vector: Sequence[float],
        anchor_rotation: Optional[Rotation] = None,
    ) -> Rotation:
        rotation = anchor_rotation if anchor_rotation is not None else self.current_rotation()
        return compose_from_pointer_delta(anchor_vector, new_vector, rotation)

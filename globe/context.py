from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .common import (
    MAX_SCALE,
    MIN_SCALE,
    AuroraSnapshot,
    BoundaryGeometry,
    GeoPoint,
    ViewState,
)


@dataclass
class RenderContext:
    """Everything a frame reads, owned by a single renderer.

    Only the UI thread writes here: gestures replace ``view``, loaders hand
    finished snapshots to the renderer which swaps them in whole. Every
    writer goes through the renderer so ``needs_render`` stays truthful.
    """

    view: ViewState = field(default_factory=ViewState)
    surface_size: Tuple[int, int] = (1, 1)
    aurora: AuroraSnapshot = field(default_factory=AuroraSnapshot.empty)
    boundaries: BoundaryGeometry = field(default_factory=BoundaryGeometry.empty)
    user_location: Optional[GeoPoint] = None
    show_location: bool = True
    show_aurora: bool = True
    min_scale: float = MIN_SCALE
    max_scale: float = MAX_SCALE
    needs_render: bool = False

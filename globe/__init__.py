from .common import (
    GLOBE_MARGIN,
    MAX_SCALE,
    MIN_SCALE,
    AuroraSample,
    AuroraSnapshot,
    BoundaryGeometry,
    GeoPoint,
    ScreenPoint,
    ViewState,
    clamp_scale,
    geo_distance,
    parse_location_string,
    wrap_longitude,
)
from .compositor import GlobeStyle, SceneCompositor
from .context import RenderContext
from .gestures import GestureController, GestureState, PointerSession
from .overlay import ColorMap, OverlayMarker, colorbar_image, visible_samples
from .projection import project, project_ring, unproject, view_center
from .renderer import GlobeRenderer
from .rotation import RotationModel, compose_from_pointer_delta
from .scheduler import RenderScheduler

__all__ = [
    "GLOBE_MARGIN",
    "MAX_SCALE",
    "MIN_SCALE",
    "AuroraSample",
    "AuroraSnapshot",
    "BoundaryGeometry",
    "ColorMap",
    "GeoPoint",
    "GestureController",
    "GestureState",
    "GlobeRenderer",
    "GlobeStyle",
    "OverlayMarker",
    "PointerSession",
    "RenderContext",
    "RenderScheduler",
    "RotationModel",
    "SceneCompositor",
    "ScreenPoint",
    "ViewState",
    "clamp_scale",
    "colorbar_image",
    "compose_from_pointer_delta",
    "geo_distance",
    "parse_location_string",
    "project",
    "project_ring",
    "unproject",
    "view_center",
    "visible_samples",
    "wrap_longitude",
]

"""Pointer/touch state machine that turns contacts into rotation or zoom.

Hosts report the full list of contacts that are down after each event, so
mouse input is simply a one-contact list. The controller keeps one
``PointerSession`` per gesture mode; whenever the number of contacts
changes it throws the session away and anchors a fresh one, so rotation
and scale deltas never mix.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from .common import Rotation, ScreenPoint
from .context import RenderContext
from .projection import unproject_vector
from .rotation import RotationModel
from .scheduler import RenderScheduler

LOGGER = logging.getLogger(__name__)

ZOOM_STEP = 1.1

Contact = Tuple[float, float]


class GestureState(str, Enum):
    IDLE = "idle"
    ROTATING = "rotating"
    PINCHING = "pinching"


@dataclass(frozen=True)
class PointerSession:
    kind: GestureState
    anchor_vector: Optional[Tuple[float, float, float]] = None
    anchor_rotation: Optional[Rotation] = None
    anchor_distance: Optional[float] = None
    anchor_scale: Optional[float] = None

    @property
    def has_anchor(self) -> bool:
        if self.kind == GestureState.ROTATING:
            return self.anchor_vector is not None and self.anchor_rotation is not None
        if self.kind == GestureState.PINCHING:
            return self.anchor_distance is not None and self.anchor_scale is not None
        return False


def pinch_distance(a: Contact, b: Contact) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _kind_for(count: int) -> GestureState:
    if count <= 0:
        return GestureState.IDLE
    if count == 1:
        return GestureState.ROTATING
    return GestureState.PINCHING


class GestureController:
    """The only writer of ``RenderContext.view`` during interaction."""

    def __init__(
        self,
        context: RenderContext,
        scheduler: RenderScheduler,
        *,
        rotation: Optional[RotationModel] = None,
        zoom_step: float = ZOOM_STEP,
    ) -> None:
        self._context = context
        self._scheduler = scheduler
        self._rotation = rotation or RotationModel(lambda: context.view.rotation)
        self._zoom_step = zoom_step
        self._session: Optional[PointerSession] = None

    @property
    def state(self) -> GestureState:
        return self._session.kind if self._session is not None else GestureState.IDLE

    @property
    def session(self) -> Optional[PointerSession]:
        return self._session

    def on_pointer_down(self, contacts: Sequence[Contact]) -> None:
        self._begin(contacts)

    def on_pointer_move(self, contacts: Sequence[Contact]) -> None:
        session = self._session
        if session is None:
            return
        if _kind_for(len(contacts)) != session.kind or not session.has_anchor:
            self._begin(contacts)
            return
        if session.kind == GestureState.ROTATING:
            self._rotate(session, contacts[0])
        else:
            self._pinch(session, contacts[0], contacts[1])

    def on_pointer_up(self, contacts: Sequence[Contact] = ()) -> None:
        """``contacts`` are the ones still down after the release."""
        if contacts:
            self._begin(contacts)
            return
        self._end()

    def on_cancel(self) -> None:
        self._end()

    def on_wheel(self, offset: float) -> None:
        if self.state == GestureState.PINCHING or not offset:
            return
        view = self._context.view
        scale = view.scale * (self._zoom_step ** offset)
        self._commit_scale(scale)

    def _begin(self, contacts: Sequence[Contact]) -> None:
        kind = _kind_for(len(contacts))
        if kind == GestureState.IDLE:
            self._end()
            return
        if kind == GestureState.ROTATING:
            self._session = self._anchor_rotation(contacts[0])
        else:
            self._session = self._anchor_pinch(contacts[0], contacts[1])
        if not self._session.has_anchor:
            LOGGER.debug("No anchor for %s gesture at %s", kind.value, list(contacts))

    def _end(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._scheduler.stop_animation()

    def _anchor_rotation(self, contact: Contact) -> PointerSession:
        view = self._context.view
        vector = unproject_vector(ScreenPoint(*contact), view)
        if vector is None:
            return PointerSession(kind=GestureState.ROTATING)
        return PointerSession(
            kind=GestureState.ROTATING,
            anchor_vector=tuple(float(c) for c in vector),  # type: ignore[arg-type]
            anchor_rotation=view.rotation,
        )

    def _anchor_pinch(self, a: Contact, b: Contact) -> PointerSession:
        distance = pinch_distance(a, b)
        if distance <= 1e-9:
            return PointerSession(kind=GestureState.PINCHING)
        return PointerSession(
            kind=GestureState.PINCHING,
            anchor_distance=distance,
            anchor_scale=self._context.view.scale,
        )

    def _rotate(self, session: PointerSession, contact: Contact) -> None:
        assert session.anchor_vector is not None and session.anchor_rotation is not None
        anchor_view = self._context.view.with_rotation(session.anchor_rotation)
        vector = unproject_vector(ScreenPoint(*contact), anchor_view)
        if vector is None:
            return
        rotation = self._rotation.compose_from_pointer_delta(
            session.anchor_vector, vector, session.anchor_rotation
        )
        self._context.view = self._context.view.with_rotation(rotation)
        self._scheduler.request_render()

    def _pinch(self, session: PointerSession, a: Contact, b: Contact) -> None:
        assert session.anchor_distance is not None and session.anchor_scale is not None
        scale = session.anchor_scale * pinch_distance(a, b) / session.anchor_distance
        self._commit_scale(scale)

    def _commit_scale(self, scale: float) -> None:
        ctx = self._context
        ctx.view = ctx.view.with_scale(scale, ctx.min_scale, ctx.max_scale)
        self._scheduler.request_render()

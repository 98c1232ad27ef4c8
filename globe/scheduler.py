"""Dirty-flag render loop ticked by the host's display refresh."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from .context import RenderContext

LOGGER = logging.getLogger(__name__)


class RenderScheduler:
    """Redraws only when something changed and goes quiet otherwise.

    The host calls :meth:`tick` once per refresh while :attr:`running` is
    true and blocks on its own event queue while it is false. ``on_start``
    lets the host wake that queue when a render is requested from idle.
    """

    def __init__(
        self,
        context: RenderContext,
        draw: Callable[[], None],
        *,
        on_start: Optional[Callable[[], None]] = None,
    ) -> None:
        self._context = context
        self._draw = draw
        self._on_start = on_start
        self._running = False
        self._stop_after_draw = False
        self.frames_drawn = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> bool:
        return self._context.needs_render

    def request_render(self) -> None:
        self._context.needs_render = True
        self._stop_after_draw = False
        if self._running:
            return
        self._running = True
        LOGGER.debug("Frame loop started")
        if self._on_start is not None:
            self._on_start()

    def tick(self) -> bool:
        """Run one refresh. Returns True when a frame was composited."""
        if not self._running:
            return False
        if not self._context.needs_render:
            self._halt()
            return False
        self._draw()
        self._context.needs_render = False
        self.frames_drawn += 1
        if self._stop_after_draw:
            self._halt()
        return True

    def stop_animation(self) -> None:
        """Wind the loop down at gesture end.

        A frame that is still pending gets drawn on the next tick and the
        loop halts right after it instead of waiting for an idle tick.
        """
        if not self._running:
            return
        if self._context.needs_render:
            self._stop_after_draw = True
            return
        self._halt()

    def _halt(self) -> None:
        self._running = False
        self._stop_after_draw = False
        LOGGER.debug("Frame loop idle after %d frames", self.frames_drawn)

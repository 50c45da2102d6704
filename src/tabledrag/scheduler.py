"""Timers and animation frames for the engine.

The engine is single threaded and callback driven.  Everything that is
deferred (breakout settling, drag coalescing, retry backoff) goes through a
:class:`Scheduler` so hosts can map it onto their own loop and tests can
drive it by hand.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

FRAME_MS = 16


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Handle:
        """Run *callback* once after *delay_ms* milliseconds."""
        ...

    def request_frame(self, callback: Callable[[], None]) -> Handle:
        """Run *callback* before the next paint."""
        ...

    def now_ms(self) -> float: ...


class _DoneHandle:
    """Handle for a callback that already ran."""

    def cancel(self) -> None:
        pass


class AsyncioScheduler:
    """Maps timers onto the running asyncio loop; frames tick every 16 ms.

    Without a running loop callbacks run synchronously, the same fallback
    the terminal input buffer uses.
    """

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Handle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return _DoneHandle()
        return loop.call_later(max(0.0, delay_ms) / 1000, callback)

    def request_frame(self, callback: Callable[[], None]) -> Handle:
        return self.call_later(FRAME_MS, callback)

    def now_ms(self) -> float:
        return time.monotonic() * 1000


class Slot:
    """Holds at most one pending callback.

    Arming an occupied slot is a no-op, which is how bursts of notifications
    coalesce into one evaluation.  The slot is released before the callback
    runs so the callback may re-arm it.
    """

    def __init__(self) -> None:
        self._token: object | None = None
        self._handle: Handle | None = None
        self._callback: Callable[[], None] | None = None

    @property
    def pending(self) -> bool:
        return self._token is not None

    def arm(
        self,
        schedule: Callable[[Callable[[], None]], Handle],
        callback: Callable[[], None],
    ) -> bool:
        """Schedule *callback* through *schedule* unless already pending."""
        if self._token is not None:
            return False
        token = self._token = object()
        self._callback = callback

        def fire() -> None:
            if self._token is not token:
                return
            self._release()
            callback()

        handle = schedule(fire)
        # A loop-less scheduler may already have fired
        if self._token is token:
            self._handle = handle
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._release()

    def flush(self) -> bool:
        """Run the pending callback now instead of later."""
        callback = self._callback
        if self._token is None or callback is None:
            return False
        self.cancel()
        callback()
        return True

    def _release(self) -> None:
        self._token = None
        self._handle = None
        self._callback = None

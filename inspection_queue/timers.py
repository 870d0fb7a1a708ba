from __future__ import annotations

# Cancellable delayed actions.
#
# The display scheduler and the announcement player each own at most one
# `TimerHandle` at a time and cancel it before asking for a new one.
#
# Two implementations:
# - `TkTimers`: wraps Tk's `after` / `after_cancel` so callbacks run on the
#   UI thread (same thread that drains the MQTT inbox).
# - `TimerQueue`: a virtual millisecond clock. Tests call `advance(ms)`;
#   the headless display calls `advance_to(now_ms)` from its own loop.
#
# A cancelled handle never fires, even if the underlying loop already
# dequeued it: the callback wrapper checks the handle first.

import heapq
import itertools
import logging
import time
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    """Owned reference to one pending delayed action."""

    def __init__(self, due_ms: int, on_cancel: Callable[[], None] | None = None) -> None:
        self.due_ms = due_ms
        self.cancelled = False
        self.fired = False
        self._on_cancel = on_cancel

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class Timers(Protocol):
    def now_ms(self) -> int: ...

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle: ...


def _fire(handle: TimerHandle, callback: Callback) -> None:
    if not handle.active:
        return
    handle.fired = True
    callback()


class TimerQueue:
    """Heap-backed virtual clock (milliseconds)."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._heap: list[tuple[int, int, TimerHandle, Callback]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle:
        due = self._now + max(0, int(delay_ms))
        handle = TimerHandle(due)
        heapq.heappush(self._heap, (due, next(self._seq), handle, callback))
        return handle

    def pending(self) -> list[TimerHandle]:
        """Handles that can still fire, earliest first."""
        return [h for _, _, h, _ in sorted(self._heap) if h.active]

    def advance(self, delta_ms: int) -> None:
        self.advance_to(self._now + int(delta_ms))

    def advance_to(self, target_ms: int) -> None:
        # Callbacks may schedule new timers that are due before target_ms;
        # the heap picks them up in the same pass.
        while self._heap and self._heap[0][0] <= target_ms:
            due, _, handle, callback = heapq.heappop(self._heap)
            if not handle.active:
                continue
            self._now = due
            _fire(handle, callback)
        self._now = max(self._now, target_ms)


class TkTimers:
    """Timers backed by a Tk widget's event loop."""

    def __init__(self, widget: Any, clock: Callable[[], float] | None = None) -> None:
        self._widget = widget
        self._clock = clock or time.monotonic

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle:
        delay = max(0, int(delay_ms))
        after_id: list[str] = []

        def _cancel() -> None:
            if after_id:
                try:
                    self._widget.after_cancel(after_id[0])
                except Exception:
                    logger.debug("after_cancel failed for %s", after_id[0], exc_info=True)

        handle = TimerHandle(self.now_ms() + delay, on_cancel=_cancel)
        after_id.append(self._widget.after(delay, lambda: _fire(handle, callback)))
        return handle

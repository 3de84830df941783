"""Clock abstraction with cancellable delayed callbacks.

All time comparisons in the engine go through a :class:`Clock`, so tests
can drive time with :class:`ManualClock` instead of sleeping.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from typing import Protocol

from common.logging_utils import get_logger


class TimerHandle:
    """Handle returned by :meth:`Clock.call_later`.

    Cancellation is cooperative: a callback that already started is not
    interrupted, so callers still check liveness inside the callback.
    """

    def __init__(self, due_at: datetime) -> None:
        self.due_at = due_at
        self._cancelled = False
        self._timer: threading.Timer | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class Clock(Protocol):
    """Source of the current time and of delayed callbacks."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        """Schedule callback to run once after delay.

        Args:
            delay: How long to wait
            callback: Zero-argument callable

        Returns:
            TimerHandle: Handle that can cancel the callback
        """
        ...


class SystemClock:
    """Wall clock backed by :class:`threading.Timer`.

    Timer threads never run the callback themselves when a ``dispatch``
    function is given; they hand it over so the owner can serialize it
    with the rest of its event handling.

    Args:
        dispatch: Called with the callback when a timer fires. Defaults to
            calling it directly on the timer thread.
    """

    def __init__(self, dispatch: Callable[[Callable[[], None]], None] | None = None) -> None:
        self._dispatch = dispatch
        self.logger = get_logger('switch_engine.clock')

    def now(self) -> datetime:
        return datetime.now(UTC)

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now() + delay)

        def fire() -> None:
            if handle.cancelled:
                return
            try:
                if self._dispatch is not None:
                    self._dispatch(callback)
                else:
                    callback()
            except Exception:  # noqa: BLE001
                self.logger.exception('Timer callback failed')

        timer = threading.Timer(max(delay.total_seconds(), 0.0), fire)
        timer.daemon = True
        handle._timer = timer
        timer.start()
        return handle


class ManualClock:
    """Deterministic clock for tests and offline replay.

    Time only moves when :meth:`advance` or :meth:`set` is called. Due
    callbacks fire in due-time order, ties in scheduling order.

    Args:
        start: Initial time (defaults to the Unix epoch, UTC)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(1970, 1, 1, tzinfo=UTC)
        self._queue: list[tuple[datetime, int, TimerHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + delay)
        heapq.heappush(self._queue, (handle.due_at, next(self._counter), handle, callback))
        return handle

    @property
    def pending_timers(self) -> int:
        """Number of scheduled, not yet cancelled callbacks."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, delta: timedelta | None = None, *, milliseconds: float = 0) -> None:
        """Move time forward and fire every callback that became due.

        Args:
            delta: Amount of time to advance
            milliseconds: Alternative way to give the amount, added to delta
        """
        step = (delta or timedelta()) + timedelta(milliseconds=milliseconds)
        self.set(self._now + step)

    def set(self, when: datetime) -> None:
        """Jump to an absolute time, firing due callbacks on the way."""
        if when < self._now:
            raise ValueError(f'Cannot move clock backwards: {when} < {self._now}')  # noqa: TRY003

        while self._queue and self._queue[0][0] <= when:
            due_at, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            # Callbacks observe their own due time, then may schedule more.
            self._now = max(self._now, due_at)
            callback()

        self._now = when

"""
Cooperative, single-threaded timers for the animation and reconciliation
drivers. A callback always runs to completion before the next one starts.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    def __init__(self, scheduler: "Scheduler", callback: Callback, when: float, period: Optional[float]) -> None:
        self.scheduler = scheduler
        self.callback = callback
        self.when = when
        self.period = period
        self.cancelled = False
        self.fired = False
        self._native: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._native is not None:
            self._native.cancel()
        self.scheduler._handles.discard(self)


class Scheduler:
    """Base class; subclasses supply a clock and a way to wake up later."""

    def __init__(self) -> None:
        self._handles: Set[TimerHandle] = set()

    def now(self) -> float:
        raise NotImplementedError

    def _arm(self, handle: TimerHandle) -> None:
        raise NotImplementedError

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(self, callback, self.now() + max(0.0, delay), None)
        self._handles.add(handle)
        self._arm(handle)
        return handle

    def call_every(self, period: float, callback: Callback) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        handle = TimerHandle(self, callback, self.now() + period, period)
        self._handles.add(handle)
        self._arm(handle)
        return handle

    def _fire(self, handle: TimerHandle) -> None:
        if handle.cancelled:
            return
        if handle.period is None:
            handle.fired = True
            self._handles.discard(handle)
        try:
            handle.callback()
        except Exception:
            logger.exception("timer callback %r failed", handle.callback)
        if handle.period is not None and not handle.cancelled:
            handle.when += handle.period
            self._arm(handle)

    @property
    def pending(self) -> int:
        return len(self._handles)

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()


class ManualScheduler(Scheduler):
    """Virtual clock that only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        super().__init__()
        self._now = start
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def _arm(self, handle: TimerHandle) -> None:
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))

    def advance(self, seconds: float) -> None:
        """Run every timer due within ``seconds``, in time order."""
        deadline = self._now + seconds
        while self._queue and self._queue[0][0] <= deadline + 1e-9:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            self._fire(handle)
        self._now = deadline


class AsyncioScheduler(Scheduler):
    """Timers on an asyncio event loop, using the loop's monotonic clock."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__()
        self.loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time()

    def _arm(self, handle: TimerHandle) -> None:
        handle._native = self.loop.call_at(handle.when, self._fire, handle)

# pseudoflow/scheduler.py
# Timer sources for the execution engine. A scheduler only knows how to run a
# callback later and how to cancel that; the engine decides what a tick does.
#
#   ManualScheduler  -> virtual clock, advanced explicitly (tests, CLI)
#   AsyncioScheduler -> asyncio event-loop timers (interactive playback)

from __future__ import annotations
import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Set, Tuple

log = logging.getLogger(__name__)


class SchedulerError(RuntimeError):
    pass


class TimerHandle:
    """Handle for a scheduled callback; cancel() prevents it from running."""

    def __init__(self, cancel_fn: Callable[[], None]):
        self._cancel_fn = cancel_fn
        self._cancelled = False

    def cancel(self) -> None:
        if not self._cancelled:
            try:
                self._cancel_fn()
            finally:
                self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class Scheduler:
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:  # pragma: no cover
        raise NotImplementedError

    def now(self) -> float:
        """Milliseconds on this scheduler's clock."""
        raise NotImplementedError  # pragma: no cover


class ManualScheduler(Scheduler):
    """
    Deterministic virtual clock. Nothing runs until advance()/run_next() is
    called; callbacks fire in due-time order, ties in scheduling order.
    """

    def __init__(self):
        self._clock = 0.0
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._queued: Set[int] = set()
        self._cancelled: Set[int] = set()

    def now(self) -> float:
        return self._clock

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        if delay_ms < 0:
            raise SchedulerError(f"delay must be >= 0 ms, got {delay_ms}")
        seq = next(self._seq)
        heapq.heappush(self._queue, (self._clock + delay_ms, seq, callback))
        self._queued.add(seq)
        return TimerHandle(lambda: self._cancel(seq))

    def _cancel(self, seq: int) -> None:
        # a callback that already ran (or was dropped) leaves nothing to mark
        if seq in self._queued:
            self._cancelled.add(seq)

    @property
    def pending(self) -> int:
        return len(self._queued - self._cancelled)

    def _next_live(self) -> Optional[Tuple[float, int, Callable[[], None]]]:
        """Head of the queue after dropping cancelled entries; left in place."""
        while self._queue:
            item = self._queue[0]
            if item[1] not in self._cancelled:
                return item
            heapq.heappop(self._queue)
            self._queued.discard(item[1])
            self._cancelled.discard(item[1])
        return None

    def _run(self) -> None:
        due, seq, callback = heapq.heappop(self._queue)
        self._queued.discard(seq)
        self._clock = max(self._clock, due)
        callback()

    def run_next(self) -> bool:
        """Jump the clock to the next live callback and run it. False when idle."""
        if self._next_live() is None:
            return False
        self._run()
        return True

    def advance(self, ms: float) -> int:
        """Move the clock forward by `ms`, running everything that falls due. Returns the count run."""
        if ms < 0:
            raise SchedulerError("cannot move the clock backwards")
        target = self._clock + ms
        ran = 0
        while True:
            item = self._next_live()
            if item is None or item[0] > target:
                break
            self._run()
            ran += 1
        self._clock = target
        return ran


class AsyncioScheduler(Scheduler):
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise SchedulerError("AsyncioScheduler needs a running event loop or an explicit loop") from e
        return self._loop

    def now(self) -> float:
        return self._ensure_loop().time() * 1000.0

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._ensure_loop()

        def _call():
            try:
                callback()
            except Exception:
                log.exception("scheduled tick raised")

        handle = loop.call_later(delay_ms / 1000.0, _call)
        return TimerHandle(handle.cancel)

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cancellable(Protocol):
    def cancel(self) -> object: ...


# Same shape as asyncio's ``loop.call_later(delay_seconds, callback)``.
Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def timer_scheduler(delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
    """Fire ``callback`` on a ``threading.Timer`` thread."""
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


@dataclass
class _LoopTimer:
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class LoopScheduler:
    """``call_later`` for a loop pumped by its owner.

    Nothing runs in the background: due callbacks run on whichever thread
    calls ``run_pending``, the way Tk runs ``root.after`` callbacks inside
    ``mainloop``. Scheduling itself may happen from any thread.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, _LoopTimer]] = []
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def __call__(self, delay_seconds: float, callback: Callable[[], None]) -> _LoopTimer:
        timer = _LoopTimer(callback)
        due = self._clock() + max(0.0, delay_seconds)
        with self._lock:
            heapq.heappush(self._heap, (due, next(self._sequence), timer))
        return timer

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for _, _, timer in self._heap if not timer.cancelled)

    def run_pending(self) -> int:
        """Run every callback that is due now. Returns how many ran."""
        ran = 0
        while True:
            with self._lock:
                while self._heap and self._heap[0][2].cancelled:
                    heapq.heappop(self._heap)
                if not self._heap or self._heap[0][0] > self._clock():
                    return ran
                _, _, timer = heapq.heappop(self._heap)
            timer.callback()
            ran += 1


class DebouncedValue(Generic[T]):
    """Emit a value only after it stopped changing for ``delay_ms``.

    Each ``set_pending`` restarts the quiet period. ``on_stable`` fires at
    most once per quiet period, always with the latest value, and never
    after ``dispose``.
    """

    def __init__(
        self,
        initial_value: T,
        on_stable: Callable[[T], None],
        delay_ms: int = 500,
        scheduler: Scheduler | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self._value = initial_value
        self._on_stable = on_stable
        self.delay_ms = delay_ms
        self._scheduler = scheduler or timer_scheduler
        self._handle: Cancellable | None = None
        self._generation = 0
        self._disposed = False
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        initial_value: T,
        on_stable: Callable[[T], None],
        delay_ms: int = 500,
        scheduler: Scheduler | None = None,
    ) -> DebouncedValue[T]:
        return cls(initial_value, on_stable, delay_ms=delay_ms, scheduler=scheduler)

    @property
    def value(self) -> T:
        return self._value

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def set_pending(self, value: T) -> None:
        with self._lock:
            if self._disposed:
                return
            self._value = value
            self._generation += 1
            generation = self._generation
            self._cancel_locked()
            if self.delay_ms > 0:
                self._handle = self._scheduler(self.delay_ms / 1000, lambda: self._fire(generation))
                return
        self._fire(generation)

    def sync(self, value: T) -> None:
        """Adopt an externally changed value without emitting it."""
        with self._lock:
            self._value = value
            self._generation += 1
            self._cancel_locked()

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._generation += 1
            self._cancel_locked()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if self._disposed or generation != self._generation:
                return
            self._handle = None
            value = self._value
        logger.debug("debounce_stable", extra={"delay_ms": self.delay_ms})
        self._on_stable(value)

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from table_sync.config import ClientConfig


@dataclass
class _ManualTimer:
    due: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Scheduler with the ``call_later(delay, callback)`` shape driven by ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[_ManualTimer] = []

    def __call__(self, delay_seconds: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(due=self.now + delay_seconds, callback=callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self.timers if not timer.cancelled and not timer.fired)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds + 1e-9
        while True:
            due = [t for t in self.timers if not t.cancelled and not t.fired and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.due)
            self.now = max(self.now, timer.due)
            timer.fired = True
            timer.callback()
        self.now = target

    def run_pending(self) -> None:
        self.advance(0)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("TABLE_SYNC_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(env_name="test", api_base_url="http://api.test", retry_backoff_seconds=0)

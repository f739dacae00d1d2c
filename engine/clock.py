from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class FixedClock:
    """Settable clock for replays and tests."""

    def __init__(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms

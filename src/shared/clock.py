"""Injectable clocks.

Components take a ``clock`` callable instead of reading the time directly so
tests can move time explicitly.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], float]


def system_clock() -> float:
    """Seconds since the epoch."""
    return time.time()


def utc_now(clock: Clock = system_clock) -> datetime:
    """Current time as an aware UTC datetime, read from ``clock``."""
    return datetime.fromtimestamp(clock(), tz=UTC)


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Time source for attempt timestamps.

    The session controller asks this interface for the time instead of reading
    the system clock, so scripted tests can advance time by hand.
    """

    def now(self) -> float:
        """Return seconds since the epoch."""


class RealClock:
    """Wall clock backed by time.time(); recorded attempts keep calendar timestamps."""

    def now(self) -> float:
        return time.time()

"""Millisecond time sources used for expiry comparisons."""

from __future__ import annotations

import time

from abc import ABC, abstractmethod


class Clock(ABC):
    """Base class for time sources.

    Memoized functions only ever compare timestamps from the same clock, so the epoch doesn't
    matter, but the clock must never go backwards.
    """
    @abstractmethod
    def now(self) -> float:
        """Returns the current time in milliseconds."""
        pass


class MonotonicClock(Clock):
    """Clock based on `time.monotonic()`."""
    def now(self) -> float:
        return time.monotonic() * 1000.0


# shared by every memoized function that isn't given its own clock
default_clock = MonotonicClock()

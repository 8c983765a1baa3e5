"""Time-to-live policies for memoized results.

A TTL is one of:
- `Never`: results are kept forever
- `Fixed(ms)`: results expire `ms` milliseconds after being computed
- `Computed(func)`: `func` is called with the arguments of each miss and returns one of the above
  (a number of milliseconds, or None/`math.inf` for never)

Non-positive durations mean the result is returned but never stored.
"""

from __future__ import annotations

import math

from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable

from ttlmemo.constants import ConfigurationError, MAX_TIMEOUT_MS, NEVER


def _to_ms(value: Any) -> float:
    """Converts a max age value into milliseconds, with `NEVER` for None or infinity."""
    if value is None:
        return NEVER
    if isinstance(value, bool) or not isinstance(value, Real) or math.isnan(value):
        raise ConfigurationError(f'max_age must be a number of milliseconds, not {value!r}')
    if value == math.inf:
        return NEVER
    return float(value)


class TTL(ABC):
    """Base class for TTL policies."""
    @abstractmethod
    def resolve(self, args: tuple, kwargs: dict) -> float:
        """Returns the TTL in ms for a call with the given arguments (`NEVER` for no expiry)."""
        pass

    def expires_at(self, now: float, args: tuple, kwargs: dict) -> float|None:
        """Returns the expiration timestamp for a result computed at `now`.

        Returns None if the result should not be stored at all, and `NEVER` if it never expires.

        Raises `ConfigurationError` if the TTL exceeds `MAX_TIMEOUT_MS`.
        """
        ms = self.resolve(args, kwargs)
        if ms == NEVER:
            return NEVER
        if ms <= 0:
            return None
        if ms > MAX_TIMEOUT_MS:
            raise ConfigurationError(f'max_age cannot exceed {MAX_TIMEOUT_MS}, got {ms}')
        return now + ms


@dataclass(frozen=True)
class Never(TTL):
    def resolve(self, args: tuple, kwargs: dict) -> float:
        return NEVER


@dataclass(frozen=True)
class Fixed(TTL):
    ms: float

    def resolve(self, args: tuple, kwargs: dict) -> float:
        return self.ms


@dataclass(frozen=True)
class Computed(TTL):
    func: Callable[..., Any]

    def resolve(self, args: tuple, kwargs: dict) -> float:
        return _to_ms(self.func(*args, **kwargs))


def parse_max_age(max_age: Any) -> TTL:
    """Converts a user-facing `max_age` option into a `TTL`.

    Accepts None, a number of ms (with `math.inf` meaning never), a callable, or a `TTL`.
    Anything else raises a `ConfigurationError`. Note that the bound check against
    `MAX_TIMEOUT_MS` happens when results are stored, not here.
    """
    if isinstance(max_age, TTL):
        return max_age
    if max_age is not None and not isinstance(max_age, Real) and callable(max_age):
        return Computed(max_age)
    ms = _to_ms(max_age)
    return Never() if ms == NEVER else Fixed(ms)

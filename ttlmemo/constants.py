from __future__ import annotations

import math

from typing import TypeVar

# type for cache keys
KeyT = TypeVar('KeyT')

# largest timeout (in ms) we will schedule, i.e. a signed 32-bit int
MAX_TIMEOUT_MS = 2_147_483_647

# expiration timestamp for items that never expire
NEVER = math.inf


class MemoizeError(Exception):
    """Base class for all errors raised by memoization."""
    pass


class ConfigurationError(MemoizeError, ValueError):
    """Raised when memoization options are invalid, e.g. a max age that is too large."""
    pass


class UnknownWrapperError(MemoizeError, TypeError):
    """Raised when clearing or inspecting something that was not memoized."""
    def __init__(self, fn):
        super().__init__(f"Cannot use {fn!r}: it was not memoized")
        self.fn = fn


class UnsupportedOperationError(MemoizeError, NotImplementedError):
    """Raised when a cache store lacks an optional operation (e.g. `clear()`)."""
    pass


class TargetNotCallableError(MemoizeError, TypeError):
    """Raised when the method adapter is applied to something that isn't callable."""
    def __init__(self, name: str):
        super().__init__(f"The decorated value '{name}' must be callable")
        self.name = name

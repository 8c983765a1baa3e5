from .clock import Clock, MonotonicClock
from .constants import (
    MAX_TIMEOUT_MS,
    NEVER,
    MemoizeError,
    ConfigurationError,
    UnknownWrapperError,
    UnsupportedOperationError,
    TargetNotCallableError
)
from .keyers import Keyer, FirstArgKeyer, CallableKeyer, TupleKeyer, HashStringKeyer
from .memoizer import Memoized, memoize, memoize_clear, memoize_is_cached
from .methods import MemoizedMethod, memoize_method, memoize_methods
from .stores import CacheItem, CacheStore, MemoryStore, SQLStore
from .timers import ScheduledTask, Scheduler, ThreadingScheduler
from .ttl import TTL, Never, Fixed, Computed

__all__ = [
    'Clock',
    'MonotonicClock',
    'MAX_TIMEOUT_MS',
    'NEVER',
    'MemoizeError',
    'ConfigurationError',
    'UnknownWrapperError',
    'UnsupportedOperationError',
    'TargetNotCallableError',
    'Keyer',
    'FirstArgKeyer',
    'CallableKeyer',
    'TupleKeyer',
    'HashStringKeyer',
    'Memoized',
    'memoize',
    'memoize_clear',
    'memoize_is_cached',
    'MemoizedMethod',
    'memoize_method',
    'memoize_methods',
    'CacheItem',
    'CacheStore',
    'MemoryStore',
    'SQLStore',
    'ScheduledTask',
    'Scheduler',
    'ThreadingScheduler',
    'TTL',
    'Never',
    'Fixed',
    'Computed'
]

"""Memoization with optional expiration and pluggable stores.

The main entry point is `memoize()`, which wraps a function in a `Memoized` handle:

    @memoize(max_age=10_000)
    def expensive(x, y):
        ...

    expensive(2, 4)          # computes
    expensive(2, 4)          # cached for the next 10 seconds
    expensive.is_cached(2, 4)
    expensive.clear()

The handle owns its store, its keyer and its outstanding eviction timers, so there is no global
registry: when the handle goes away, so does everything it cached (pending timers only reference
the store, and run on a single daemon worker thread).

Expired items are evicted two ways: lazily, when a lookup finds an expired item, and proactively,
by a timer scheduled when the item is stored. The lazy check alone is enough for correctness; the
timers make sure stale items don't linger in the store if the function is never called again.

Concurrent calls are not serialized: two threads missing on the same key at the same time will
both compute, and whichever stores last wins.
"""

from __future__ import annotations

import functools
import logging
import threading
import weakref

from numbers import Real
from typing import Any, Callable

from ttlmemo.clock import Clock, default_clock
from ttlmemo.constants import KeyT, UnknownWrapperError, UnsupportedOperationError
from ttlmemo.keyers import Keyer, make_keyer
from ttlmemo.stores import CacheItem, CacheStore, MemoryStore
from ttlmemo.timers import ScheduledTask, Scheduler, ThreadingScheduler
from ttlmemo.ttl import TTL, parse_max_age

logger = logging.getLogger(__name__)

_default_scheduler = ThreadingScheduler()


class Memoized:
    """A memoized function, along with its store, keyer and pending eviction timers.

    Call it like the original function. Use `clear()` to empty the cache and `is_cached()` to
    check for a valid cached result without computing anything.
    """
    def __init__(self,
                 fn: Callable,
                 *,
                 ttl: TTL,
                 keyer: Keyer,
                 cache: CacheStore,
                 clock: Clock,
                 scheduler: Scheduler):
        functools.update_wrapper(self, fn)
        self.fn = fn
        self.name = getattr(fn, '__qualname__', None) or repr(fn)
        self.ttl = ttl
        self.keyer = keyer
        self.cache = cache
        self.clock = clock
        self.scheduler = scheduler
        self._timers: list[ScheduledTask] = []
        self._lock = threading.Lock()
        self.stats: dict[str, int] = {
            'hits': 0,
            'misses': 0,
            'evictions': 0,
        }

    def __repr__(self) -> str:
        return f'<Memoized {self.name} ttl={self.ttl}>'

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        key = self.keyer.make_key(args, kwargs)
        item = self._get_valid_item(key)
        if item is not None:
            self._count('hits')
            return item.data

        self._count('misses')
        result = self.fn(*args, **kwargs)

        now = self.clock.now()
        expires_at = self.ttl.expires_at(now, args, kwargs)
        if expires_at is None: # non-positive ttl, so don't store anything
            return result
        item = CacheItem(data=result, expires_at=expires_at)
        self.cache.set(key, item)
        if not item.never_expires:
            try:
                self._schedule_eviction(key, item, expires_at - now)
            except Exception:
                # an item without its timer must not stay behind
                self.cache.delete(key)
                raise
        return result

    def _count(self, stat: str) -> None:
        with self._lock:
            self.stats[stat] += 1

    def _get_valid_item(self, key: KeyT) -> CacheItem|None:
        """Returns the cached item for `key` if it exists and hasn't expired.

        Expired items are deleted from the store.
        """
        item = self.cache.get(key)
        if item is None:
            return None
        if not item.is_valid(self.clock.now()):
            logger.debug(f'Evicting expired key {key!r} from {self.name}')
            self.cache.delete(key)
            self._count('evictions')
            return None
        return item

    def _schedule_eviction(self, key: KeyT, item: CacheItem, delay_ms: float) -> None:
        """Schedules a timer to delete `key` after `delay_ms`, and keeps track of it."""
        task = self.scheduler.schedule(delay_ms, _make_evictor(self.cache, key, item, weakref.ref(self)))
        with self._lock:
            self._timers = [t for t in self._timers if not t.done]
            self._timers.append(task)
        logger.debug(f'Scheduled eviction of {key!r} from {self.name} in {delay_ms}ms')

    @property
    def pending_timers(self) -> int:
        """Number of eviction timers that haven't fired or been cancelled yet."""
        with self._lock:
            return sum(1 for t in self._timers if not t.done)

    def get_stats(self) -> dict[str, int]:
        """Get cache statistics (hits, misses and evictions)."""
        with self._lock:
            return self.stats.copy()

    def is_cached(self, *args: Any, **kwargs: Any) -> bool:
        """Returns whether a call with these arguments would be served from the cache.

        This never calls the function and never modifies the store.
        """
        key = self.keyer.make_key(args, kwargs)
        item = self.cache.get(key)
        return item is not None and item.is_valid(self.clock.now())

    def clear(self) -> None:
        """Clears all cached results and cancels all pending eviction timers.

        Raises `UnsupportedOperationError` if our store doesn't have a `clear()` method.
        """
        clear = getattr(self.cache, 'clear', None)
        if not callable(clear):
            raise UnsupportedOperationError(f'Cache {self.cache!r} does not support clear()')
        clear()
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        logger.debug(f'Cleared {self.name} and cancelled {len(timers)} timers')


def _make_evictor(cache: CacheStore,
                  key: KeyT,
                  item: CacheItem,
                  owner_ref: weakref.ref) -> Callable[[], None]:
    """Returns a timer callback that deletes `key` from `cache` if it still holds `item`.

    An entry stored after `item` (with a later expiration) is left alone. We only hold a weak
    reference to the owning `Memoized`, for stats.
    """
    def evict() -> None:
        current = cache.get(key)
        if current is None or current.expires_at > item.expires_at:
            return
        cache.delete(key)
        owner = owner_ref()
        if owner is not None:
            owner._count('evictions')
        logger.debug(f'Timer evicted {key!r}')

    return evict


def _is_zero(max_age: Any) -> bool:
    return isinstance(max_age, Real) and not isinstance(max_age, bool) and max_age == 0


def memoize(fn: Callable|None=None,
            *,
            max_age: float|Callable[..., float|None]|TTL|None = None,
            cache_key: Keyer|Callable[[tuple], Any]|None = None,
            cache: CacheStore|None = None,
            clock: Clock|None = None,
            scheduler: Scheduler|None = None) -> Any:
    """Memoizes `fn`, returning a `Memoized` handle.

    If `fn` is not given, returns a decorator that memoizes with these options.

    Args:
    - max_age: How long (in ms) results stay valid. One of:
      - None or `math.inf`: forever (default)
      - a number: results expire after that many ms. Non-positive numbers mean results are never
        stored, except that exactly 0 skips memoization entirely and returns `fn` itself.
      - a function: called with the arguments of each miss, returning one of the above
      Values over `MAX_TIMEOUT_MS` raise a `ConfigurationError` when a result would be stored.
    - cache_key: A `Keyer`, or a function that takes the tuple of positional args and returns the
      key. Defaults to the first positional argument.
    - cache: The store to use. Defaults to a new `MemoryStore`.
    - clock: Time source in ms. Defaults to the shared monotonic `default_clock`.
    - scheduler: Where to schedule eviction timers. Defaults to a `ThreadingScheduler`.
    """
    if fn is None:
        return functools.partial(
            memoize,
            max_age=max_age,
            cache_key=cache_key,
            cache=cache,
            clock=clock,
            scheduler=scheduler,
        )
    if not callable(fn):
        raise TypeError(f'Cannot memoize non-callable {fn!r}')
    if _is_zero(max_age):
        return fn
    return Memoized(
        fn,
        ttl=parse_max_age(max_age),
        keyer=make_keyer(cache_key),
        cache=MemoryStore() if cache is None else cache,
        clock=clock or default_clock,
        scheduler=scheduler or _default_scheduler,
    )


def memoize_clear(fn: Any) -> None:
    """Clears the cache of memoized function `fn` and cancels its pending timers.

    Raises `UnknownWrapperError` if `fn` was not memoized, and `UnsupportedOperationError` if its
    store can't be cleared.
    """
    if not isinstance(fn, Memoized):
        raise UnknownWrapperError(fn)
    fn.clear()


def memoize_is_cached(fn: Any, *args: Any, **kwargs: Any) -> bool:
    """Returns whether memoized function `fn` has a valid cached result for these arguments.

    Returns False if `fn` was not memoized.
    """
    if not isinstance(fn, Memoized):
        return False
    return fn.is_cached(*args, **kwargs)

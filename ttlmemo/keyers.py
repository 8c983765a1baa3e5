"""Keyers convert the arguments of a memoized call into a cache key."""

from __future__ import annotations

import hashlib
import json

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic

from ttlmemo.constants import ConfigurationError, KeyT


class Keyer(ABC, Generic[KeyT]):
    """Base class for converting function arguments into cache keys.

    Keyers must be deterministic and free of side effects. Two calls whose keys compare equal are
    treated as the same computation.
    """
    @abstractmethod
    def make_key(self, args: tuple, kwargs: dict) -> KeyT:
        """Convert function arguments into a cache key.

        Args:
        - args: Tuple of positional arguments
        - kwargs: Dict of keyword arguments

        Returns a key suitable for the cache store (hashable for `MemoryStore`).
        """
        pass


class FirstArgKeyer(Keyer[Any]):
    """Uses the first positional argument as the key (None if there are none).

    This is the default, and it means all other arguments are ignored!
    """
    def make_key(self, args: tuple, kwargs: dict) -> Any:
        return args[0] if args else None


class CallableKeyer(Keyer[KeyT]):
    """Wraps a plain function that takes the tuple of positional arguments and returns a key."""
    def __init__(self, func: Callable[[tuple], KeyT]):
        self.func = func

    def make_key(self, args: tuple, kwargs: dict) -> KeyT:
        return self.func(args)


class TupleKeyer(Keyer[tuple]):
    """Converts all positional and keyword arguments into an immutable tuple-based key.

    Each argument is converted to a string using `json.dumps(obj, sort_keys=True)`. Arguments that
    aren't JSON serializable are converted recursively instead:
    - lists/tuples → tuples
    - sets → frozensets
    - dicts → frozenset of items
    - other objects → themselves (so they must be hashable)

    The final key is a tuple of (converted_args..., converted_kwargs).
    """
    def make_key(self, args: tuple, kwargs: dict) -> tuple:
        return tuple(self._make_hashable(arg) for arg in args) + (self._make_hashable(kwargs),)

    def _make_hashable(self, obj: Any) -> Any:
        try:
            return json.dumps(obj, sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError):
            return self._convert(obj)

    def _convert(self, obj: Any) -> Any:
        """Recursively convert an object into a hashable form."""
        if isinstance(obj, (list, tuple)):
            return tuple(self._convert(x) for x in obj)
        if isinstance(obj, dict):
            return frozenset((self._convert(k), self._convert(v)) for k, v in obj.items())
        if isinstance(obj, (set, frozenset)):
            return frozenset(self._convert(x) for x in obj)
        hash(obj) # raises TypeError if unhashable
        return obj


class HashStringKeyer(Keyer[str]):
    """Hashes the `str()` of the `TupleKeyer` key, returning a hex digest.

    Useful for stores that want fixed-length string keys.
    """
    def __init__(self, hash_func: str='sha256'):
        """The input `hash_func` names a `hashlib` algorithm (e.g. 'sha256', 'md5')."""
        if not hasattr(hashlib, hash_func):
            raise ValueError(f"Hash algorithm '{hash_func}' not found in hashlib")
        self.hash_func = hash_func
        self._tuple_maker = TupleKeyer()

    def make_key(self, args: tuple, kwargs: dict) -> str:
        s = str(self._tuple_maker.make_key(args, kwargs))
        return getattr(hashlib, self.hash_func)(s.encode('utf-8')).hexdigest()


def make_keyer(cache_key: Keyer|Callable[[tuple], Any]|None) -> Keyer:
    """Returns a `Keyer` for the given `cache_key` option.

    None gives the default `FirstArgKeyer`, plain callables get wrapped in a `CallableKeyer`.
    """
    if cache_key is None:
        return FirstArgKeyer()
    if isinstance(cache_key, Keyer):
        return cache_key
    if callable(cache_key):
        return CallableKeyer(cache_key)
    raise ConfigurationError(f'cache_key must be a Keyer or callable, not {type(cache_key).__name__}')

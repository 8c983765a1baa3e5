"""Memoizing methods, with a separate cache per instance.

    class Counter:
        def __init__(self):
            self.total = 0

        @memoize_method(max_age=1000)
        def add(self, n):
            self.total += n
            return self.total

Each instance lazily gets its own `Memoized` handle on first access, stored in the instance's own
`__dict__` under the method's name (so later accesses don't go through the descriptor at all).
The handle, and everything it cached, goes away with the instance.
"""

from __future__ import annotations

import functools
import inspect
import types
import weakref

from typing import Any, Callable

from ttlmemo.constants import ConfigurationError, TargetNotCallableError
from ttlmemo.memoizer import memoize


def _unwrap(member: Any) -> tuple[Any, str]:
    """Returns the underlying function of a class member and what kind of method it is."""
    if isinstance(member, staticmethod):
        return member.__func__, 'static'
    if isinstance(member, classmethod):
        return member.__func__, 'class'
    return member, 'instance'


def _weakly_bound(func: Callable, instance: Any) -> Callable:
    """Binds `func` to `instance` without keeping `instance` alive."""
    ref = weakref.ref(instance)

    @functools.wraps(func)
    def bound(*args, **kwargs):
        return func(ref(), *args, **kwargs)

    return bound


class MemoizedMethod:
    """Descriptor that memoizes a method separately for each instance.

    Works on plain methods as well as `staticmethod`s and `classmethod`s (whose receiver is the
    instance's class). The `cache` option, if given, must be a zero-argument factory (such as a
    store class) since each instance needs its own store.

    Handles live in the instance's `__dict__`. Instances without one (i.e. using `__slots__`) get
    their handles from a side table instead, whose entries are removed when the instance is
    collected; such classes need a `__weakref__` slot.
    """
    def __init__(self, func: Callable, options: dict[str, Any]):
        func, self.kind = _unwrap(func)
        if not callable(func):
            raise TargetNotCallableError(getattr(func, '__name__', repr(func)))
        cache = options.get('cache')
        if cache is not None and not callable(cache):
            raise ConfigurationError('cache must be a store factory when memoizing methods')
        functools.update_wrapper(self, func)
        self.func = func
        self.options = options
        self.attr_name = getattr(func, '__name__', None)
        # id(instance) -> handle, for instances without a __dict__
        self._slotted: dict[int, Any] = {}

    def __set_name__(self, owner: type, name: str) -> None:
        self.attr_name = name

    def __get__(self, instance: Any, owner: type|None=None) -> Any:
        if instance is None:
            return self
        instance_dict = getattr(instance, '__dict__', None)
        if instance_dict is not None:
            try:
                return instance_dict[self.attr_name]
            except KeyError:
                pass
            memoized = self._memoize_for(instance, weak=False)
            instance_dict[self.attr_name] = memoized
            return memoized

        key = id(instance)
        try:
            return self._slotted[key]
        except KeyError:
            pass
        try:
            weakref.finalize(instance, self._slotted.pop, key, None)
        except TypeError:
            raise ConfigurationError(
                f"Cannot memoize '{self.attr_name}' on {type(instance).__name__}: instances "
                "have no __dict__ and can't be weakly referenced (add '__weakref__' to __slots__)")
        memoized = self._slotted[key] = self._memoize_for(instance, weak=True)
        return memoized

    def _memoize_for(self, instance: Any, weak: bool) -> Any:
        """Creates the memoized handle for `instance`."""
        options = dict(self.options)
        if options.get('cache') is not None:
            options['cache'] = options['cache']()
        if self.kind == 'static':
            target = self.func
        elif self.kind == 'class':
            target = types.MethodType(self.func, type(instance))
        elif weak:
            target = _weakly_bound(self.func, instance)
        else:
            target = types.MethodType(self.func, instance)
        return memoize(target, **options)


def memoize_method(func: Callable|None=None, **options: Any) -> Any:
    """Decorator to memoize a method per instance. Takes the same options as `memoize()`.

    Can be used bare (`@memoize_method`) or with options (`@memoize_method(max_age=1000)`), and
    can be stacked on top of `@staticmethod` or `@classmethod`.
    """
    if func is None:
        return lambda f: MemoizedMethod(f, options)
    return MemoizedMethod(func, options)


def memoize_methods(cls: type, *names: str, **options: Any) -> type:
    """Memoizes the existing methods `names` of `cls` in place, and returns `cls`.

    Members are looked up without invoking descriptors, so static and class methods keep their
    kind. Raises `TargetNotCallableError` if any of the named members isn't callable.
    """
    originals = {name: inspect.getattr_static(cls, name, None) for name in names}
    for name, original in originals.items():
        if not callable(_unwrap(original)[0]):
            raise TargetNotCallableError(name)
    for name, original in originals.items():
        descriptor = MemoizedMethod(original, options)
        descriptor.__set_name__(cls, name)
        setattr(cls, name, descriptor)
    return cls

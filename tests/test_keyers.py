"""Tests out ttlmemo.keyers"""

from __future__ import annotations

import pytest

from ttlmemo.constants import ConfigurationError
from ttlmemo.keyers import (
    CallableKeyer, FirstArgKeyer, HashStringKeyer, Keyer, TupleKeyer, make_keyer
)

def test_first_arg_keyer():
    keyer = FirstArgKeyer()
    assert keyer.make_key((1, 2, 3), {'x': 4}) == 1
    assert keyer.make_key((), {'x': 4}) is None

def test_callable_keyer_gets_positional_args():
    keyer = CallableKeyer(lambda args: args[1])
    assert keyer.make_key(('a', 'b'), {'c': 'd'}) == 'b'

def test_tuple_keyer_basic():
    keyer = TupleKeyer()
    key = keyer.make_key((1, "test"), {"x": 2})
    assert isinstance(key, tuple)
    assert len(key) == 3
    assert key == keyer.make_key((1, "test"), {"x": 2})
    assert key != keyer.make_key((1, "test"), {"x": 3})
    hash(key)

def test_tuple_keyer_kwargs_order():
    keyer = TupleKeyer()
    assert keyer.make_key((), {'a': 1, 'b': 2}) == keyer.make_key((), {'b': 2, 'a': 1})

def test_tuple_keyer_nested():
    """Nested structures that aren't json-able still become hashable."""
    keyer = TupleKeyer()
    key = keyer.make_key(([1, 2], {'a': [3, 4]}, {5, 6}), {})
    hash(key)
    assert key[0] == '[1, 2]'
    assert isinstance(key[2], frozenset)
    assert key == keyer.make_key(([1, 2], {'a': [3, 4]}, {6, 5}), {})

def test_tuple_keyer_objects():
    obj = object()
    keyer = TupleKeyer()
    assert keyer.make_key((obj,), {})[0] is obj

def test_tuple_keyer_unhashable():
    class UnhashableObject:
        def __hash__(self):
            raise TypeError("unhashable")

    keyer = TupleKeyer()
    with pytest.raises(TypeError):
        keyer.make_key((UnhashableObject(),), {})

def test_hash_string_keyer():
    keyer = HashStringKeyer('sha256')
    key = keyer.make_key((1, "test"), {"x": 2})
    assert isinstance(key, str)
    assert len(key) == 64  # sha256 hex digest length
    assert key == keyer.make_key((1, "test"), {"x": 2})
    assert len(HashStringKeyer('md5').make_key((1,), {})) == 32

def test_hash_keyer_invalid_algorithm():
    with pytest.raises(ValueError):
        HashStringKeyer('invalid_algorithm')

def test_make_keyer():
    assert isinstance(make_keyer(None), FirstArgKeyer)
    keyer = TupleKeyer()
    assert make_keyer(keyer) is keyer
    wrapped = make_keyer(lambda args: len(args))
    assert isinstance(wrapped, CallableKeyer)
    assert wrapped.make_key((1, 2), {}) == 2
    assert isinstance(wrapped, Keyer)
    with pytest.raises(ConfigurationError):
        make_keyer('not a keyer')

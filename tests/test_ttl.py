"""Tests out ttlmemo.ttl"""

from __future__ import annotations

import math

import pytest

from ttlmemo.constants import MAX_TIMEOUT_MS, NEVER, ConfigurationError
from ttlmemo.ttl import Computed, Fixed, Never, parse_max_age

@pytest.mark.parametrize('max_age, expected', [
    (None, Never()),
    (math.inf, Never()),
    (1000, Fixed(1000.0)),
    (2.5, Fixed(2.5)),
    (-5, Fixed(-5.0)),
    (0, Fixed(0.0)),
])
def test_parse_numbers(max_age, expected):
    assert parse_max_age(max_age) == expected

def test_parse_callable():
    func = lambda *args: 10
    assert parse_max_age(func) == Computed(func)

def test_parse_ttl_passthrough():
    ttl = Fixed(10)
    assert parse_max_age(ttl) is ttl

@pytest.mark.parametrize('max_age', ['10', True, math.nan, [10]])
def test_parse_invalid(max_age):
    with pytest.raises(ConfigurationError):
        parse_max_age(max_age)

def test_expires_at():
    assert Never().expires_at(50.0, (), {}) == NEVER
    assert Fixed(100).expires_at(50.0, (), {}) == 150.0
    assert Fixed(MAX_TIMEOUT_MS).expires_at(0.0, (), {}) == MAX_TIMEOUT_MS
    assert Fixed(0).expires_at(50.0, (), {}) is None
    assert Fixed(-1).expires_at(50.0, (), {}) is None

def test_expires_at_too_large():
    with pytest.raises(ConfigurationError):
        Fixed(MAX_TIMEOUT_MS + 1).expires_at(0.0, (), {})

def test_computed_uses_args():
    ttl = Computed(lambda x, scale=1: x * scale)
    assert ttl.resolve((3,), {'scale': 10}) == 30
    assert ttl.expires_at(1.0, (3,), {}) == 4.0
    assert ttl.expires_at(1.0, (0,), {}) is None

@pytest.mark.parametrize('value', [None, math.inf])
def test_computed_never(value):
    assert Computed(lambda: value).expires_at(0.0, (), {}) == NEVER

def test_computed_invalid_result():
    with pytest.raises(ConfigurationError):
        Computed(lambda: 'ten').resolve((), {})

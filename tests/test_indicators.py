# tests/test_indicators.py
"""
Tests de la media móvil simple (compute_sma).
"""

import math

import numpy as np
import pytest

from smabot.errors import InvalidArgumentError
from smabot.feed import generate_series
from smabot.indicators import compute_sma

from conftest import make_series


def test_sma_matches_arithmetic_mean_of_each_window():
    s = generate_series(120, rng=np.random.default_rng(11), now=0)
    prices = [p.price for p in s]
    for k in (1, 2, 5, 10, 30, 120):
        ma = compute_sma(s, k)
        assert len(ma) == len(s) - k + 1
        for j, point in enumerate(ma):
            i = j + k - 1
            expected = sum(prices[i - k + 1:i + 1]) / k
            assert point.time == s[i].time, "La media debe alinearse con el último punto de la ventana"
            assert math.isclose(point.value, expected, rel_tol=1e-9)


def test_sma_small_known_values():
    ma = compute_sma(make_series([1, 2, 3, 4, 5]), 3)
    assert [m.value for m in ma] == [2.0, 3.0, 4.0]
    assert [m.time for m in ma] == [4_000, 6_000, 8_000]


def test_sma_flat_series_is_exact():
    ma = compute_sma(make_series([100.0] * 30), 20)
    assert all(m.value == 100.0 for m in ma)


@pytest.mark.parametrize("k", [6, 7, 50, 500])
def test_sma_empty_when_not_enough_history(k):
    assert compute_sma(make_series([1, 2, 3, 4, 5]), k) == ()


def test_sma_on_empty_series():
    assert compute_sma((), 3) == ()


@pytest.mark.parametrize("bad", [0, -1, 2.5, True, "5"])
def test_sma_rejects_invalid_period(bad):
    with pytest.raises(InvalidArgumentError):
        compute_sma(make_series([1, 2, 3]), bad)

# tests/conftest.py
"""
Fixtures compartidas por los tests.

Los escenarios usan series construidas a mano (precios exactos) para no
depender del paseo aleatorio; cuando se usa el feed aleatorio, siempre con
un `numpy.random.Generator` con semilla.
"""

import numpy as np
import pytest

from smabot.core import PricePoint
from smabot.portfolio import new_portfolio
from smabot.strategy import Strategy

STEP_MS = 2_000


def make_series(prices, start_ms: int = 0, step_ms: int = STEP_MS):
    """Serie inmutable con los precios dados, espaciados `step_ms`."""
    return tuple(PricePoint(time=start_ms + i * step_ms, price=float(p)) for i, p in enumerate(prices))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def flat_series():
    # 30 puntos planos a 100: ambas medias valen exactamente 100
    return make_series([100.0] * 30)


@pytest.fixture
def strategy_5_20():
    return Strategy(short_period=5, long_period=20, trade_amount=1_000.0)


@pytest.fixture
def portfolio():
    return new_portfolio(100_000.0)

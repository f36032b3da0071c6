# tests/test_feed.py
"""
Tests del feed sintético (PriceSeries).

Cubre:
- Suelo de precio para puntos generados y añadidos.
- Histórico acotado a MAX_HISTORY con descarte FIFO.
- Tiempo monótono y serie de entrada intacta (actualización funcional).
- Determinismo con semilla y errores de precondición.
"""

import numpy as np
import pytest

from smabot.const import MAX_HISTORY
from smabot.core import PricePoint
from smabot.errors import InvalidArgumentError, InvalidStateError
from smabot.feed import append_point, generate_series, push_point, series_dataframe

from conftest import make_series


# ------------------------------------------------------------------------------
# generate_series
# ------------------------------------------------------------------------------
def test_generate_series_shape_and_spacing(rng):
    s = generate_series(150, rng=rng, now=1_000_000, initial_price=150.0, interval_ms=2_000)

    assert len(s) == 150
    assert s[0].price == 150.0, "El primer punto debe ser exactamente el precio inicial"
    # time_i = now - (count - i) * interval
    assert s[0].time == 1_000_000 - 150 * 2_000
    assert s[-1].time == 1_000_000 - 2_000
    assert all(b.time - a.time == 2_000 for a, b in zip(s, s[1:]))


def test_generate_series_is_deterministic_with_seed():
    a = generate_series(50, rng=np.random.default_rng(7), now=0)
    b = generate_series(50, rng=np.random.default_rng(7), now=0)
    assert a == b


def test_generate_series_respects_floor():
    # Volatilidad enorme: sin suelo saldrían precios negativos
    s = generate_series(200, rng=np.random.default_rng(0), now=0, volatility=5.0, floor=10.0)
    assert min(p.price for p in s) >= 10.0
    assert any(p.price == 10.0 for p in s), "Con esta volatilidad el suelo debería activarse"


def test_generate_series_count_edge_cases(rng):
    assert generate_series(0, rng=rng, now=0) == ()
    with pytest.raises(InvalidArgumentError):
        generate_series(-1, rng=rng, now=0)


# ------------------------------------------------------------------------------
# append_point
# ------------------------------------------------------------------------------
def test_append_point_does_not_mutate_input(rng):
    s = make_series([100.0, 101.0, 102.0])
    before = tuple(s)
    s2 = append_point(s, rng=rng, now=10_000)

    assert s == before
    assert len(s2) == len(s) + 1
    assert s2[:-1] == s


def test_append_point_step_is_bounded_by_volatility(rng):
    s = make_series([100.0])
    for _ in range(50):
        s2 = append_point(s, rng=rng, now=s[-1].time + 2_000, volatility=0.02, floor=10.0)
        last, new = s[-1].price, s2[-1].price
        # |new - last| <= 0.5 * last * vol
        assert abs(new - last) <= 0.5 * last * 0.02 + 1e-12
        s = s2


def test_append_point_floor_holds_for_any_sequence():
    rng = np.random.default_rng(99)
    s = make_series([12.0])
    for i in range(500):
        s = append_point(s, rng=rng, now=(i + 1) * 2_000, volatility=3.0, floor=10.0)
        assert s[-1].price >= 10.0


def test_bounded_history_length():
    rng = np.random.default_rng(3)
    s = generate_series(150, rng=rng, now=0)
    for k in range(1, 121):
        s = append_point(s, rng=rng, now=k * 2_000)
        assert len(s) == min(150 + k, MAX_HISTORY)
    assert len(s) == MAX_HISTORY


def test_fifo_eviction_keeps_newest_points(rng):
    s = make_series(range(1, MAX_HISTORY + 1))
    s2 = append_point(s, rng=rng, now=s[-1].time + 2_000)

    assert len(s2) == MAX_HISTORY
    assert s2[0] == s[1], "Debe descartarse el punto más antiguo"
    assert s2[-2] == s[-1]


def test_time_is_monotonic_even_if_clock_goes_back(rng):
    s = make_series([100.0, 100.0], start_ms=50_000)
    s2 = append_point(s, rng=rng, now=0)  # reloj por detrás del último punto
    assert s2[-1].time == s[-1].time

    times = [p.time for p in s2]
    assert times == sorted(times)


def test_append_on_empty_series_is_invalid_state(rng):
    with pytest.raises(InvalidStateError):
        append_point((), rng=rng, now=0)


# ------------------------------------------------------------------------------
# push_point (replay)
# ------------------------------------------------------------------------------
def test_push_point_rejects_time_going_back():
    s = make_series([100.0, 100.0], start_ms=10_000)
    with pytest.raises(InvalidArgumentError):
        push_point(s, PricePoint(time=0, price=100.0))


def test_push_point_rejects_non_positive_price():
    s = make_series([100.0])
    with pytest.raises(InvalidArgumentError):
        push_point(s, PricePoint(time=s[-1].time + 1, price=0.0))


def test_series_dataframe_columns():
    df = series_dataframe(make_series([100.0, 101.0]))
    assert list(df.columns) == ["ts", "time", "price"]
    assert len(df) == 2
    assert str(df["ts"].dt.tz) == "UTC"

    empty = series_dataframe(())
    assert list(empty.columns) == ["ts", "time", "price"]
    assert empty.empty

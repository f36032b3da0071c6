# tests/test_signals.py
"""
Tests del detector de cruces (golden / death cross).

Las medias se construyen a mano para controlar exactamente cada comparación.
"""

import pytest

from smabot.core import MovingAveragePoint
from smabot.errors import InvalidStateError
from smabot.signals import Signal, classify_cross, detect_crossover


def ma(values, start_ms: int = 0, step_ms: int = 2_000):
    return tuple(MovingAveragePoint(time=start_ms + i * step_ms, value=v) for i, v in enumerate(values))


def walk(short_vals, long_vals):
    """Señal en cada tick, como si las medias fueran creciendo punto a punto."""
    out = []
    for n in range(2, len(short_vals) + 1):
        out.append(detect_crossover(ma(short_vals[:n]), ma(long_vals[:n])))
    return out


# ------------------------------------------------------------------------------
# Clasificación pura
# ------------------------------------------------------------------------------
@pytest.mark.parametrize(
    "prev_s, curr_s, prev_l, curr_l, expected",
    [
        (9.0, 11.0, 10.0, 10.0, Signal.GOLDEN_CROSS),
        (11.0, 9.0, 10.0, 10.0, Signal.DEATH_CROSS),
        (11.0, 12.0, 10.0, 10.0, Signal.NONE),   # ya por encima
        (9.0, 8.0, 10.0, 10.0, Signal.NONE),     # ya por debajo
        (10.0, 10.0, 10.0, 10.0, Signal.NONE),   # iguales sin separación
        # empate en el punto anterior: cuenta como cruce
        (10.0, 10.5, 10.0, 10.0, Signal.GOLDEN_CROSS),
        (10.0, 9.5, 10.0, 10.0, Signal.DEATH_CROSS),
        # se tocan en el punto actual: no hay cruce estricto
        (9.0, 10.0, 10.0, 10.0, Signal.NONE),
    ],
)
def test_classify_cross(prev_s, curr_s, prev_l, curr_l, expected):
    assert classify_cross(prev_s, curr_s, prev_l, curr_l) is expected


# ------------------------------------------------------------------------------
# Detección sobre series
# ------------------------------------------------------------------------------
def test_insufficient_history_is_no_signal():
    assert detect_crossover(ma([1.0]), ma([0.0])) is Signal.NONE
    assert detect_crossover((), ma([0.0, 1.0])) is Signal.NONE
    assert detect_crossover(ma([1.0, 2.0]), ()) is Signal.NONE


def test_golden_cross_is_edge_triggered():
    # short por debajo, luego estrictamente por encima durante 3 puntos seguidos
    short = [9.0, 11.0, 12.0, 13.0]
    long = [10.0, 10.0, 10.0, 10.0]
    assert walk(short, long) == [Signal.GOLDEN_CROSS, Signal.NONE, Signal.NONE]


def test_death_cross_is_edge_triggered():
    short = [11.0, 9.0, 8.0, 7.0]
    long = [10.0, 10.0, 10.0, 10.0]
    assert walk(short, long) == [Signal.DEATH_CROSS, Signal.NONE, Signal.NONE]


def test_series_of_different_length_align_by_tail():
    # La media corta tiene más puntos (periodo menor), ambas acaban en el mismo tick
    short = ma([5.0, 6.0, 9.0, 11.0], start_ms=0)
    long = ma([10.0, 10.0], start_ms=4_000)
    assert detect_crossover(short, long) is Signal.GOLDEN_CROSS


def test_misaligned_series_raise_invalid_state():
    short = ma([9.0, 11.0], start_ms=0)
    long = ma([10.0, 10.0], start_ms=2_000)
    with pytest.raises(InvalidStateError):
        detect_crossover(short, long)

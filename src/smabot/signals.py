# src/smabot/signals.py
"""
Detección de cruces entre dos medias móviles (corta y larga).

Estados derivados (no se guardan) en cada tick:
- NONE         : sin señal
- GOLDEN_CROSS : la corta cruza POR ENCIMA de la larga  -> BUY
- DEATH_CROSS  : la corta cruza POR DEBAJO de la larga  -> SELL

La detección es por flanco: solo dispara en el tick en que cambia la
relación, no mientras se mantiene.

Empates: la comparación del punto "anterior" usa <= / >=, de modo que una
igualdad previa seguida de separación cuenta como cruce.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from .core import MovingAveragePoint
from .errors import InvalidStateError

logger = logging.getLogger(__name__)


class Signal(str, Enum):
    NONE = "NONE"
    GOLDEN_CROSS = "GOLDEN_CROSS"
    DEATH_CROSS = "DEATH_CROSS"


def classify_cross(
    prev_short: float, curr_short: float, prev_long: float, curr_long: float
) -> Signal:
    if prev_short <= prev_long and curr_short > curr_long:
        return Signal.GOLDEN_CROSS
    if prev_short >= prev_long and curr_short < curr_long:
        return Signal.DEATH_CROSS
    return Signal.NONE


def detect_crossover(
    short_ma: Sequence[MovingAveragePoint],
    long_ma: Sequence[MovingAveragePoint],
) -> Signal:
    """
    Compara los dos últimos puntos alineados de cada serie.

    Ambas medias salen de la misma PriceSeries, así que terminan en el mismo
    índice de precio: se alinean por la cola (offset compartido) en vez de
    buscar timestamps. Si aun así los tiempos no coinciden, las series no
    proceden del mismo histórico y se lanza InvalidStateError.
    """
    if len(short_ma) < 2 or len(long_ma) < 2:
        return Signal.NONE

    prev_s, curr_s = short_ma[-2], short_ma[-1]
    prev_l, curr_l = long_ma[-2], long_ma[-1]

    if prev_s.time != prev_l.time or curr_s.time != curr_l.time:
        raise InvalidStateError(
            "medias desalineadas: "
            f"short=({prev_s.time}, {curr_s.time}) long=({prev_l.time}, {curr_l.time})"
        )

    signal = classify_cross(prev_s.value, curr_s.value, prev_l.value, curr_l.value)
    if signal is not Signal.NONE:
        logger.debug(
            "%s en t=%s | short %.6f -> %.6f | long %.6f -> %.6f",
            signal.value, curr_s.time, prev_s.value, curr_s.value, prev_l.value, curr_l.value,
        )
    return signal

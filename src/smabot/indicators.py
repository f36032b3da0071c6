# src/smabot/indicators.py
"""
Indicadores técnicos sobre una PriceSeries.

Por ahora solo la media móvil simple (SMA). Es una proyección pura de la
serie: no se guarda en ningún sitio, se recalcula en cada tick.
"""

from __future__ import annotations

from .core import MovingAveragePoint, PriceSeries
from .errors import InvalidArgumentError


def compute_sma(series: PriceSeries, period: int) -> tuple[MovingAveragePoint, ...]:
    """
    Media móvil simple de `period` puntos.

    - period <= 0                 -> InvalidArgumentError
    - len(series) < period        -> tupla vacía ("aún no hay histórico suficiente")
    - en otro caso, un punto por cada ventana que termina en el índice i
      (i >= period - 1), con time = series[i].time y value = sum(ventana) / period.

    Se suma cada ventana completa (sin suma acumulada) para no arrastrar
    error de redondeo entre ventanas. Con MAX_HISTORY = 200 el coste es
    irrelevante.
    """
    if isinstance(period, bool) or not isinstance(period, int):
        raise InvalidArgumentError(f"period debe ser un entero (recibido {period!r})")
    if period <= 0:
        raise InvalidArgumentError(f"period debe ser > 0 (recibido {period})")

    n = len(series)
    if n < period:
        return ()

    prices = [p.price for p in series]
    return tuple(
        MovingAveragePoint(time=series[i].time, value=sum(prices[i - period + 1:i + 1]) / period)
        for i in range(period - 1, n)
    )

# src/smabot/feed.py
"""
Feed sintético de precios (paseo aleatorio acotado).

Responsabilidades
-----------------
1) `generate_series(count, ...)`: histórico inicial de `count` puntos que
   termina justo antes de "ahora", espaciados `interval_ms`.
2) `append_point(series, ...)`: extiende la serie con un punto nuevo
   (paseo aleatorio sobre el último precio), respetando el suelo y el
   tamaño máximo (FIFO).
3) `push_point(series, point, ...)`: append acotado de un punto explícito
   (modo replay: precios dados por el llamador, útil en escenarios y tests).
4) `series_dataframe(series)`: exportación a DataFrame para reports.

Diseño
------
- Todas las funciones son **funcionales**: nunca mutan la serie recibida,
  devuelven una tupla nueva. Un snapshot anterior puede seguir leyéndose
  con seguridad mientras se calcula el siguiente.
- La fuente aleatoria es un `numpy.random.Generator` inyectable; con una
  semilla fija la serie es determinista.
- El reloj también es inyectable (`now_ms`); por defecto, reloj de pared.
"""

from __future__ import annotations

import time

import numpy as np
import pandas as pd

from . import settings
from .const import MAX_HISTORY
from .core import PricePoint, PriceSeries
from .errors import InvalidArgumentError, InvalidStateError


def now_ms() -> int:
    """Reloj de pared en milisegundos."""
    return int(time.time() * 1000)


def _step(price: float, rng: np.random.Generator, volatility: float, floor: float) -> float:
    # Perturbación uniforme centrada en 0: price * (U(-0.5, 0.5) * volatility)
    new_price = price + float(rng.uniform(-0.5, 0.5)) * price * volatility
    return new_price if new_price >= floor else floor


# --------------------------------------------------------------------------------------
# Generación del histórico inicial
# --------------------------------------------------------------------------------------
def generate_series(
    count: int,
    rng: np.random.Generator | None = None,
    now: int | None = None,
    *,
    initial_price: float | None = None,
    volatility: float | None = None,
    floor: float | None = None,
    interval_ms: int | None = None,
) -> PriceSeries:
    """
    Genera `count` puntos. El punto i tiene time = now - (count - i) * interval_ms;
    el primero vale exactamente `initial_price` y cada paso posterior aplica
    el paseo aleatorio acotado al suelo.
    """
    if count < 0:
        raise InvalidArgumentError(f"count debe ser >= 0 (recibido {count})")

    rng = rng if rng is not None else np.random.default_rng()
    now = now_ms() if now is None else int(now)
    price = float(settings.INITIAL_PRICE if initial_price is None else initial_price)
    vol = float(settings.VOLATILITY if volatility is None else volatility)
    lo = float(settings.PRICE_FLOOR if floor is None else floor)
    step_ms = int(settings.TICK_INTERVAL_MS if interval_ms is None else interval_ms)

    if price < lo:
        price = lo

    points: list[PricePoint] = []
    for i in range(count):
        points.append(PricePoint(time=now - (count - i) * step_ms, price=price))
        price = _step(price, rng, vol, lo)
    return tuple(points)


# --------------------------------------------------------------------------------------
# Extensión incremental
# --------------------------------------------------------------------------------------
def push_point(series: PriceSeries, point: PricePoint, max_len: int = MAX_HISTORY) -> PriceSeries:
    """
    Añade `point` al final y recorta por delante hasta `max_len` (FIFO).
    El tiempo no puede retroceder respecto al último punto.
    """
    if max_len <= 0:
        raise InvalidArgumentError(f"max_len debe ser > 0 (recibido {max_len})")
    if not point.price > 0:
        raise InvalidArgumentError(f"precio no positivo: {point.price}")
    if series and point.time < series[-1].time:
        raise InvalidArgumentError(
            f"timestamp decreciente: {point.time} < {series[-1].time}"
        )

    extended = (*series, point)
    if len(extended) > max_len:
        extended = extended[len(extended) - max_len:]
    return extended


def append_point(
    series: PriceSeries,
    rng: np.random.Generator | None = None,
    now: int | None = None,
    *,
    volatility: float | None = None,
    floor: float | None = None,
    max_len: int = MAX_HISTORY,
) -> PriceSeries:
    """
    Devuelve una serie nueva con un punto más:
      new_price = last + U(-0.5, 0.5) * last * volatility   (acotado al suelo)
      time      = max(now, last.time)                        (tiempo monótono)
    """
    if not series:
        raise InvalidStateError("append_point sobre una serie vacía")

    rng = rng if rng is not None else np.random.default_rng()
    vol = float(settings.VOLATILITY if volatility is None else volatility)
    lo = float(settings.PRICE_FLOOR if floor is None else floor)

    last = series[-1]
    ts = now_ms() if now is None else int(now)
    point = PricePoint(time=max(ts, last.time), price=_step(last.price, rng, vol, lo))
    return push_point(series, point, max_len=max_len)


# --------------------------------------------------------------------------------------
# Exportación
# --------------------------------------------------------------------------------------
def series_dataframe(series: PriceSeries) -> pd.DataFrame:
    """
    DataFrame con columnas ["ts", "time", "price"]:
      - ts   : timestamp UTC tz-aware (legible)
      - time : timestamp original en ms
    """
    if not series:
        return pd.DataFrame(columns=["ts", "time", "price"])
    df = pd.DataFrame([{"time": p.time, "price": p.price} for p in series])
    df.insert(0, "ts", pd.to_datetime(df["time"], unit="ms", utc=True))
    return df

# src/smabot/strategy.py
"""
Estrategia de cruce de medias móviles simples (SMA crossover).

La estrategia es **configuración + decisión**:
- `Strategy` guarda los parámetros (short_period, long_period, trade_amount)
  y se valida al construirse: no puede existir una Strategy inválida.
- `Strategy.evaluate(series)` calcula ambas SMAs sobre la serie y deriva la
  señal del tick (golden cross / death cross / nada).

El motor (`engine.run_tick`) traduce la señal en una transición del ledger:
    GOLDEN_CROSS -> portfolio.apply_buy(..., trade_amount)
    DEATH_CROSS  -> portfolio.apply_sell(...)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any

from .const import STRATEGY_KIND
from .core import MovingAveragePoint, PriceSeries
from .errors import InvalidArgumentError
from .indicators import compute_sma
from .signals import Signal, detect_crossover

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """Resultado de evaluar la estrategia sobre una serie (proyección, no se guarda)."""

    short_ma: tuple[MovingAveragePoint, ...]
    long_ma: tuple[MovingAveragePoint, ...]
    signal: Signal


# ======================================================================================
# Estrategia SMA crossover
# ======================================================================================
@dataclass(frozen=True)
class Strategy:
    """
    Parámetros del cruce de medias.

    - short_period : int > 0   – ventana de la media corta.
    - long_period  : int > 0   – ventana de la media larga.
    - trade_amount : float > 0 – efectivo comprometido en cada BUY.
    - kind         : "SMA_CROSSOVER" (único tipo soportado).

    Se espera short_period < long_period, pero no se impone: con los
    periodos invertidos los cruces simplemente cambian de sentido. Se avisa
    por log.
    """

    short_period: int = 10
    long_period: int = 30
    trade_amount: float = 1_000.0
    kind: str = STRATEGY_KIND

    def __post_init__(self) -> None:
        if self.kind != STRATEGY_KIND:
            raise InvalidArgumentError(f"tipo de estrategia no soportado: {self.kind!r}")
        for name in ("short_period", "long_period"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidArgumentError(f"{name} debe ser un entero > 0 (recibido {value!r})")
        amount = self.trade_amount
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidArgumentError(f"trade_amount debe ser numérico (recibido {amount!r})")
        if not (math.isfinite(amount) and amount > 0):
            raise InvalidArgumentError(f"trade_amount debe ser > 0 (recibido {amount!r})")
        if self.short_period >= self.long_period:
            logger.warning(
                "short_period (%s) >= long_period (%s): los cruces se invierten",
                self.short_period,
                self.long_period,
            )

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def updated(self, **changes: Any) -> "Strategy":
        """
        Copia con cambios parciales (los campos no indicados se conservan).
        Claves desconocidas o valores inválidos -> InvalidArgumentError.
        """
        unknown = set(changes) - self.field_names()
        if unknown:
            raise InvalidArgumentError(f"parámetros de estrategia desconocidos: {sorted(unknown)}")
        return replace(self, **changes)

    def evaluate(self, series: PriceSeries) -> Evaluation:
        short_ma = compute_sma(series, self.short_period)
        long_ma = compute_sma(series, self.long_period)
        return Evaluation(short_ma=short_ma, long_ma=long_ma, signal=detect_crossover(short_ma, long_ma))

    @property
    def name(self) -> str:
        return f"SMA{self.short_period}x{self.long_period}"

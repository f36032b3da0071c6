# src/smabot/engine.py
"""
Motor (engine) de la simulación.

Responsabilidad
---------------
`run_tick(...)` ejecuta UN tick como una función pura:
1) Extiende la PriceSeries (paseo aleatorio, o un punto explícito en replay).
2) Calcula ambas medias móviles de la estrategia.
3) Detecta el cruce (golden/death).
4) Aplica como mucho una transición del ledger (BUY o SELL) al precio actual.
Devuelve el nuevo par (serie, cartera) sin mutar los de entrada: el tick es
indivisible y el estado anterior sigue siendo un snapshot válido.

`run_engine(...)` encadena N ticks sobre un reloj simulado (modo batch,
sin esperas reales), registra la equity curve y, si se le da un
`reports_dir`, exporta:
    - reports_dir/price_series.csv
    - reports_dir/equity_curve.csv
    - reports_dir/trades.csv

Notas de diseño
---------------
- Sin concurrencia interna ni E/S dentro del tick: todo es síncrono.
- La serialización de ticks (uno detrás de otro) es responsabilidad de quien
  llama: `run_engine` es un bucle secuencial y `driver.SimulationDriver`
  usa un lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from . import settings
from .core import PricePoint, PriceSeries
from .errors import InvalidArgumentError, InvalidStateError
from .feed import append_point, generate_series, push_point, series_dataframe
from .portfolio import PortfolioState, apply_buy, apply_sell, new_portfolio, trades_dataframe
from .signals import Signal
from .strategy import Strategy
from .trades import Trade

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Tipos de resultado
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class TickResult:
    series: PriceSeries
    state: PortfolioState
    signal: Signal
    trade: Trade | None = None   # trade ejecutado en este tick, si lo hubo

    @property
    def price(self) -> float:
        return self.series[-1].price


@dataclass
class SimulationResult:
    """Salida de `run_engine`: estado final + equity curve en memoria."""

    series: PriceSeries
    state: PortfolioState
    symbol: str
    equity_curve: list[tuple[int, float]] = field(default_factory=list)
    signals: dict[str, int] = field(default_factory=dict)
    run_id: str | None = None

    @property
    def last_price(self) -> float | None:
        return self.series[-1].price if self.series else None

    def equity_curve_dataframe(self) -> pd.DataFrame:
        """Columnas ["ts", "time", "equity"], ordenada por tiempo."""
        if not self.equity_curve:
            return pd.DataFrame(columns=["ts", "time", "equity"])
        df = pd.DataFrame(self.equity_curve, columns=["time", "equity"]).sort_values("time")
        df.insert(0, "ts", pd.to_datetime(df["time"], unit="ms", utc=True))
        return df.reset_index(drop=True)

    def trades_dataframe(self) -> pd.DataFrame:
        return trades_dataframe(self.state, run_id=self.run_id)

    def summary(self) -> dict:
        prices = {self.symbol: self.last_price} if self.last_price is not None else None
        return self.state.summary(prices)


# --------------------------------------------------------------------------------------
# Reloj simulado
# --------------------------------------------------------------------------------------
class SimulatedClock:
    """
    Reloj que avanza `interval_ms` en cada llamada. Permite simular miles de
    ticks sin esperar en tiempo real y con timestamps reproducibles.
    """

    def __init__(self, start_ms: int, interval_ms: int):
        if interval_ms < 0:
            raise InvalidArgumentError(f"interval_ms debe ser >= 0 (recibido {interval_ms})")
        self._now = int(start_ms)
        self.interval_ms = int(interval_ms)

    def now(self) -> int:
        return self._now

    def advance(self) -> int:
        self._now += self.interval_ms
        return self._now


# --------------------------------------------------------------------------------------
# Tick
# --------------------------------------------------------------------------------------
def run_tick(
    series: PriceSeries,
    strategy: Strategy,
    state: PortfolioState | None,
    symbol: str,
    rng: np.random.Generator | None = None,
    now: int | None = None,
    point: PricePoint | None = None,
) -> TickResult:
    """
    Un tick completo: append -> SMAs -> señal -> (BUY | SELL | nada).

    - `point`: si se pasa, se usa ese punto en vez del paseo aleatorio (replay).
    - `state is None` o serie vacía -> InvalidStateError.
    """
    if state is None:
        raise InvalidStateError("tick sin cartera inicializada")
    if not series:
        raise InvalidStateError("tick sin histórico de precios inicializado")

    # 1) Precio nuevo
    if point is not None:
        new_series = push_point(series, point)
    else:
        new_series = append_point(series, rng=rng, now=now)
    current = new_series[-1]

    # 2) + 3) Medias y señal
    signal = strategy.evaluate(new_series).signal

    # 4) Como mucho una transición del ledger
    new_state = state
    if signal is Signal.GOLDEN_CROSS:
        new_state = apply_buy(
            state, symbol, current.price, strategy.trade_amount, current.time, note="golden cross"
        )
    elif signal is Signal.DEATH_CROSS:
        new_state = apply_sell(state, symbol, current.price, current.time, note="death cross")

    trade = new_state.trades[-1] if new_state is not state else None
    return TickResult(series=new_series, state=new_state, signal=signal, trade=trade)


# --------------------------------------------------------------------------------------
# Bucle batch
# --------------------------------------------------------------------------------------
def run_engine(
    strategy: Strategy,
    symbol: str,
    ticks: int,
    *,
    seed: int | None = None,
    initial_balance: float | None = None,
    history: int | None = None,
    interval_ms: int | None = None,
    start_ms: int | None = None,
    series: PriceSeries | None = None,
    state: PortfolioState | None = None,
    log_every: int = 10,
    reports_dir: str | Path | None = None,
    run_id: str | None = None,
) -> SimulationResult:
    """
    Ejecuta `ticks` ticks seguidos sobre un reloj simulado.

    Si no se pasan `series` / `state`, se genera el histórico inicial
    (`history` puntos) y una cartera con `initial_balance`.
    """
    if ticks < 0:
        raise InvalidArgumentError(f"ticks debe ser >= 0 (recibido {ticks})")

    rng = np.random.default_rng(seed)
    step_ms = int(settings.TICK_INTERVAL_MS if interval_ms is None else interval_ms)

    if series is None:
        n_hist = int(settings.INITIAL_HISTORY if history is None else history)
        t0 = int(start_ms) if start_ms is not None else 0
        series = generate_series(n_hist, rng=rng, now=t0, interval_ms=step_ms)
    if state is None:
        cash = settings.INITIAL_BALANCE if initial_balance is None else initial_balance
        state = new_portfolio(cash)

    start = series[-1].time if series else (start_ms or 0)
    clock = SimulatedClock(start_ms=start, interval_ms=step_ms)
    log_prefix = f"[run:{run_id}] " if run_id else ""

    equity_curve: list[tuple[int, float]] = []
    signals = {s.value: 0 for s in Signal}

    for i in range(1, ticks + 1):
        result = run_tick(series, strategy, state, symbol, rng=rng, now=clock.advance())
        series, state = result.series, result.state
        signals[result.signal.value] += 1

        price = result.price
        equity_now = state.equity({symbol: price})
        equity_curve.append((series[-1].time, equity_now))

        msg = (
            f"{log_prefix}{symbol} i={i} price={price:.4f} signal={result.signal.value} "
            f"cash={state.cash:.2f} equity={equity_now:.2f}"
        )
        if i == 1 or (log_every and log_every > 0 and i % log_every == 0):
            logger.info(msg)
        else:
            logger.debug(msg)

    out = SimulationResult(
        series=series,
        state=state,
        symbol=symbol,
        equity_curve=equity_curve,
        signals=signals,
        run_id=run_id,
    )

    # ------------------------------------------------------------------
    # Exportación automática de reports si hay reports_dir
    # ------------------------------------------------------------------
    if reports_dir is not None:
        export_reports(out, Path(reports_dir), log_prefix)

    return out


# ----------------------------------------------------------------------
# Helpers de exportación
# ----------------------------------------------------------------------
def export_reports(result: SimulationResult, reports_dir: Path, log_prefix: str = "") -> dict[str, Any]:
    """
    Escribe price_series.csv, equity_curve.csv y trades.csv (este último
    siempre, aunque esté vacío, para que el contrato de columnas se cumpla).
    Devuelve las rutas escritas.
    """
    reports_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "price_series_csv": reports_dir / "price_series.csv",
        "equity_curve_csv": reports_dir / "equity_curve.csv",
        "trades_csv": reports_dir / "trades.csv",
    }

    series_dataframe(result.series).to_csv(paths["price_series_csv"], index=False)
    logger.info("%sSerie de precios escrita en %s", log_prefix, paths["price_series_csv"])

    eq_df = result.equity_curve_dataframe()
    if eq_df.empty:
        logger.info("%sEquity curve vacía; se escribe solo la cabecera", log_prefix)
    eq_df.to_csv(paths["equity_curve_csv"], index=False)
    logger.info("%sEquity curve escrita en %s", log_prefix, paths["equity_curve_csv"])

    trades_df = result.trades_dataframe()
    trades_df.to_csv(paths["trades_csv"], index=False)
    if trades_df.empty:
        logger.info("%sNo hay trades (trades.csv solo con cabecera)", log_prefix)
    else:
        logger.info("%s%d trades escritos en %s", log_prefix, len(trades_df), paths["trades_csv"])
    return paths

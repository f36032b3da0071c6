# src/smabot/portfolio.py
"""
Módulo de cartera y ledger de operaciones simuladas.

Responsabilidades principales
-----------------------------
1) Mantener el estado de la cartera en un valor inmutable (`PortfolioState`):
   - cash (efectivo), holdings (símbolo -> Holding con qty y avg_cost),
     trades (log append-only) y starting_cash (para PnL).
2) Aplicar las transiciones BUY/SELL del cruce de medias:
   - BUY: qty = floor(trade_amount / price); no-op si qty <= 0 o cash < trade_amount.
   - SELL: liquidación total de la posición; no-op si no hay posición.
3) Reporting: equity, summary y trades_dataframe (con schema_version).

Diseño
------
- Cada transición construye un `PortfolioState` NUEVO con cash, holding y
  log ya actualizados. El estado anterior no se toca, así que nunca es
  observable una aplicación parcial (cash movido pero trade sin registrar).
- Los no-ops devuelven el MISMO objeto de estado: `apply_buy(...) is state`.
- No hay fees ni slippage: el precio de ejecución es el precio del tick.

Integración
-----------
- `engine.run_tick(...)` llama a `apply_buy` / `apply_sell` según la señal.
- `engine.run_engine(...)` y `__main__.py` exportan `trades_dataframe()` a CSV.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

import pandas as pd

from .const import SCHEMA_VERSION
from .errors import InvalidArgumentError
from .trades import Trade

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Estado
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class Holding:
    """Posición abierta en un instrumento. Ausencia de Holding => plano."""

    qty: float
    avg_cost: float


@dataclass(frozen=True)
class PortfolioState:
    """
    Estado completo de la cartera de una sesión.

    Campos
    ------
    cash : float
        Efectivo disponible.
    holdings : Mapping[str, Holding]
        Posiciones abiertas por símbolo (vista de solo lectura).
    trades : tuple[Trade, ...]
        Log ordenado de operaciones; nunca se modifica, solo se extiende.
    starting_cash : float
        Efectivo al crear la cartera (base del PnL total).
    """

    cash: float
    holdings: Mapping[str, Holding] = field(default_factory=dict)
    trades: tuple[Trade, ...] = ()
    starting_cash: float | None = None

    def __post_init__(self) -> None:
        # Copia + vista de solo lectura: nadie puede mutar holdings por fuera
        object.__setattr__(self, "holdings", MappingProxyType(dict(self.holdings)))
        if self.starting_cash is None:
            object.__setattr__(self, "starting_cash", float(self.cash))

    # ----------------------------------------------------------------------------------
    # Helpers de estado
    # ----------------------------------------------------------------------------------
    def holding(self, symbol: str) -> Holding | None:
        return self.holdings.get(symbol)

    def position_value(self, prices: Mapping[str, float]) -> float:
        """Valor de mercado de las posiciones con los precios dados (0 si falta precio)."""
        return float(sum(h.qty * prices.get(sym, 0.0) for sym, h in self.holdings.items()))

    def equity(self, prices: Mapping[str, float] | None = None) -> float:
        """
        equity = cash + sum(qty * precio). Sin precios, el equity es el cash
        (sin marcar a mercado).
        """
        if not prices:
            return float(self.cash)
        return float(self.cash + self.position_value(prices))

    def realized_pnl(self) -> float:
        return float(sum(t.realized_pnl for t in self.trades))

    def summary(self, prices: Mapping[str, float] | None = None) -> dict:
        """
        Resumen compacto:
          starting_cash, cash, position_value, equity, pnl, pnl_pct,
          realized_pnl, n_trades, holdings
        """
        eq = self.equity(prices)
        start = float(self.starting_cash or 0.0)
        pnl = eq - start
        return {
            "starting_cash": start,
            "cash": float(self.cash),
            "position_value": self.position_value(prices or {}),
            "equity": eq,
            "pnl": pnl,
            "pnl_pct": (pnl / start * 100.0) if start > 0 else 0.0,
            "realized_pnl": self.realized_pnl(),
            "n_trades": len(self.trades),
            "holdings": {s: {"qty": h.qty, "avg_cost": h.avg_cost} for s, h in self.holdings.items()},
        }


def new_portfolio(cash: float) -> PortfolioState:
    """Cartera vacía con `cash` de efectivo inicial."""
    if not math.isfinite(cash) or cash < 0:
        raise InvalidArgumentError(f"cash inicial inválido: {cash}")
    return PortfolioState(cash=float(cash))


# --------------------------------------------------------------------------------------
# Transiciones BUY / SELL
# --------------------------------------------------------------------------------------
def _check_price(price: float) -> None:
    if not (math.isfinite(price) and price > 0):
        raise InvalidArgumentError(f"price debe ser > 0 (recibido {price})")


def apply_buy(
    state: PortfolioState,
    symbol: str,
    price: float,
    trade_amount: float,
    ts: int,
    note: str = "",
) -> PortfolioState:
    """
    Compra de tamaño fijo en efectivo:
      - qty = floor(trade_amount / price)
      - No-op si qty <= 0 o cash < trade_amount (el check usa trade_amount, no
        qty*price, así que el coste real nunca supera trade_amount).
      - cash -= qty*price; avg_cost ponderado con la posición previa.
    """
    if not (math.isfinite(trade_amount) and trade_amount > 0):
        raise InvalidArgumentError(f"trade_amount debe ser > 0 (recibido {trade_amount})")
    _check_price(price)

    qty = math.floor(trade_amount / price)
    if qty <= 0:
        logger.info(f"[BUY omitido] qty=0 | trade_amount={trade_amount:.2f} price={price:.4f}")
        return state
    if state.cash < trade_amount:
        logger.info(
            f"[BUY omitido] cash insuficiente | cash={state.cash:.2f} trade_amount={trade_amount:.2f}"
        )
        return state

    cost = qty * price
    prev = state.holdings.get(symbol)
    old_qty = prev.qty if prev else 0.0
    old_cost = prev.avg_cost if prev else 0.0
    new_qty = old_qty + qty
    avg_cost = (old_qty * old_cost + cost) / new_qty

    cash = state.cash - cost
    holdings = dict(state.holdings)
    holdings[symbol] = Holding(qty=float(new_qty), avg_cost=float(avg_cost))

    tr = Trade(
        ts=int(ts),
        symbol=symbol,
        side="BUY",
        qty=float(qty),
        price=float(price),
        cash_after=float(cash),
        qty_after=float(new_qty),
        realized_pnl=0.0,
        note=note,
    )
    logger.info(f"[BUY] {symbol} qty={qty} @ {price:.4f} cost={cost:.2f} cash={cash:.2f}")
    return replace(state, cash=float(cash), holdings=holdings, trades=(*state.trades, tr))


def apply_sell(
    state: PortfolioState,
    symbol: str,
    price: float,
    ts: int,
    note: str = "",
) -> PortfolioState:
    """
    Venta de la posición COMPLETA (no hay ventas parciales):
      - No-op si no hay Holding o qty <= 0.
      - cash += qty*price; el Holding desaparece; PnL realizado = qty*(price - avg_cost).
    """
    _check_price(price)

    h = state.holdings.get(symbol)
    if h is None or h.qty <= 0:
        logger.info(f"[SELL omitido] sin posición en {symbol}")
        return state

    revenue = h.qty * price
    realized = h.qty * (price - h.avg_cost)
    cash = state.cash + revenue
    holdings = {s: v for s, v in state.holdings.items() if s != symbol}

    tr = Trade(
        ts=int(ts),
        symbol=symbol,
        side="SELL",
        qty=float(h.qty),
        price=float(price),
        cash_after=float(cash),
        qty_after=0.0,
        realized_pnl=float(realized),
        note=note,
    )
    logger.info(
        f"[SELL] {symbol} qty={h.qty} @ {price:.4f} revenue={revenue:.2f} "
        f"pnl={realized:.2f} cash={cash:.2f}"
    )
    return replace(state, cash=float(cash), holdings=holdings, trades=(*state.trades, tr))


# --------------------------------------------------------------------------------------
# Reporting
# --------------------------------------------------------------------------------------
BASE_COLS = [
    "ts",
    "time",
    "symbol",
    "side",
    "qty",
    "price",
    "notional",
    "cash_after",
    "qty_after",
    "realized_pnl",
    "cum_realized_pnl",
    "note",
]
META_COLS = ["run_id", "schema_version"]


def trades_dataframe(state: PortfolioState, run_id: str | None = None) -> pd.DataFrame:
    """
    DataFrame del log de trades, en orden de ejecución.

    Columnas: BASE_COLS + META_COLS. `ts` es datetime UTC; `time` el
    timestamp original en ms. Si aún no hay trades, devuelve la cabecera
    completa vacía (los tests de contrato esperan las columnas igualmente).
    """
    if not state.trades:
        return pd.DataFrame(columns=BASE_COLS + META_COLS)

    rows = []
    cum = 0.0
    for t in state.trades:
        cum += t.realized_pnl
        rows.append(
            {
                "ts": t.ts,
                "time": t.ts,
                "symbol": t.symbol,
                "side": t.side,
                "qty": t.qty,
                "price": t.price,
                "notional": t.notional,
                "cash_after": t.cash_after,
                "qty_after": t.qty_after,
                "realized_pnl": t.realized_pnl,
                "cum_realized_pnl": cum,
                "note": t.note,
                "run_id": run_id,
                "schema_version": SCHEMA_VERSION,
            }
        )
    df = pd.DataFrame(rows, columns=BASE_COLS + META_COLS)
    df["ts"] = pd.to_datetime(df["ts"], unit="ms", utc=True)
    return df

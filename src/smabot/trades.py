# src/smabot/trades.py
"""
Estructura que representa una operación ejecutada (trade).

Cada transición BUY/SELL del ledger (`portfolio.apply_buy` / `apply_sell`)
crea un `Trade` inmutable y lo añade al log del `PortfolioState`. El log
nunca se modifica: es la auditoría completa de la sesión.

Los trades se exportan a CSV vía `portfolio.trades_dataframe()`.
"""

from dataclasses import dataclass
from typing import Literal

# Tipo literal que restringe `side` a “BUY” o “SELL”
Side = Literal["BUY", "SELL"]


@dataclass(frozen=True)
class Trade:
    """
    Transacción individual (compra o venta).

    Campos
    ------
    ts : int
        Timestamp del tick (ms) en que se ejecutó.

    symbol : str
        Símbolo del instrumento (p. ej. "GEM").

    side : Literal["BUY", "SELL"]
        Dirección de la operación.

    qty : float
        Cantidad ejecutada (> 0). En BUY es entera: floor(trade_amount / price).

    price : float
        Precio de ejecución (precio actual del tick).

    cash_after : float
        Efectivo de la cartera tras la operación.

    qty_after : float
        Posición que queda abierta tras el trade (0 tras un SELL: liquidación total).

    realized_pnl : float
        PnL realizado: qty * (price - avg_cost) en ventas, 0 en compras.

    note : str
        Texto libre (“golden cross”, “death cross”...).
    """

    ts: int
    symbol: str
    side: Side
    qty: float
    price: float
    cash_after: float
    qty_after: float
    realized_pnl: float = 0.0
    note: str = ""

    @property
    def notional(self) -> float:
        return self.qty * self.price

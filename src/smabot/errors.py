# src/smabot/errors.py
"""
Jerarquía de errores del motor.

- `InvalidArgumentError`: parámetros inválidos (periodo <= 0, trade_amount <= 0...).
  La operación no se realiza y no se muta ningún estado.
- `InvalidStateError`: precondición de estado rota (append sobre serie vacía,
  tick sin portfolio inicializado...). Es fatal para el tick en curso; el
  driver detiene el loop y lo expone al operador.

Fondos insuficientes o vender sin posición NO son errores: son no-ops
silenciosos del ledger (ver `portfolio.apply_buy` / `portfolio.apply_sell`).
"""


class EngineError(Exception):
    """Error base de smabot."""


class InvalidArgumentError(EngineError, ValueError):
    pass


class InvalidStateError(EngineError, RuntimeError):
    pass

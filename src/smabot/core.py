# src/smabot/core.py
"""
Tipos de datos “núcleo” compartidos por varios módulos.

- `PricePoint`: muestra inmutable (timestamp en ms + precio) de la serie simulada.
- `PriceSeries`: alias de tupla ordenada de `PricePoint` (inmutable; cada
  append produce una tupla nueva).
- `MovingAveragePoint`: punto de una media móvil alineado con un `PricePoint`.
- `Instrument`: activo que se simula (símbolo + nombre legible).
"""

from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True)
class PricePoint:
    """
    Muestra de precio normalizada e **inmutable**.

    Campos
    ------
    time  : int   – timestamp en milisegundos (no decreciente dentro de una serie).
    price : float – precio (> 0, ya acotado por el suelo configurado).
    """
    time: int
    price: float


# Serie ordenada por `time` ascendente y acotada a const.MAX_HISTORY.
PriceSeries: TypeAlias = tuple[PricePoint, ...]


@dataclass(frozen=True)
class MovingAveragePoint:
    time: int      # coincide con el `time` del último PricePoint de la ventana
    value: float


@dataclass(frozen=True)
class Instrument:
    """
    Instrumento activo. El conjunto es abierto: cualquier símbolo sirve,
    el nombre solo se usa para mostrar y para pedir comentarios de mercado.
    """
    symbol: str
    name: str

    @classmethod
    def from_symbol(cls, symbol: str, catalogue: dict[str, str] | None = None) -> "Instrument":
        sym = symbol.strip().upper()
        names = catalogue or {}
        return cls(symbol=sym, name=names.get(sym, sym))

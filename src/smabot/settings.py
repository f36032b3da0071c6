# src/smabot/settings.py
"""
Parámetros de la simulación y rutas del proyecto.

Todo valor numérico se puede sobrescribir con una variable de entorno del
mismo nombre (p.ej. `VOLATILITY=0.05 python -m smabot`). Los valores se
acotan al leerse: INITIAL_HISTORY queda en [1, MAX_HISTORY], los precios y
montos son estrictamente positivos.

La carpeta reports/ no se crea al importar, solo al generar un run.
"""

import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

from .const import MAX_HISTORY


# ---------------------------
# Helpers de entorno
# ---------------------------
def _f(name: str, default: float) -> float:
    """Float desde el entorno; un valor no numérico cae al default."""
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return float(default)


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return int(default)


def _b(name: str, default: bool) -> bool:
    """Booleano desde el entorno: 1/true/yes/on (sin distinguir mayúsculas) => True."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# ---------------------------
# Catálogo de instrumentos
# ---------------------------

# Conjunto abierto: cualquier símbolo es válido para el motor; este diccionario
# solo aporta nombres legibles para el catálogo por defecto.
INSTRUMENTS: dict[str, str] = {
    "GEM": "Gemini Technologies",
    "TITAN": "Titan Industries",
    "NOVA": "Nova Financial",
}

# Instrumento activo por defecto; normalizado a mayúsculas.
SYMBOL = os.getenv("SYMBOL", "GEM").upper()


# ---------------------------
# Simulación de precios
# ---------------------------

# Precio inicial del paseo aleatorio.
INITIAL_PRICE = max(0.01, _f("INITIAL_PRICE", 150.0))

# Volatilidad por paso: precio += uniform(-0.5, 0.5) * precio * VOLATILITY.
VOLATILITY = max(0.0, _f("VOLATILITY", 0.02))

# Suelo de precio (> 0) para evitar valores no físicos.
PRICE_FLOOR = max(0.01, _f("PRICE_FLOOR", 10.0))

# Puntos de histórico generados al (re)iniciar un instrumento.
INITIAL_HISTORY = max(1, min(MAX_HISTORY, _i("INITIAL_HISTORY", 150)))

# Intervalo entre ticks (segundos). También fija el espaciado temporal del
# histórico sintético.
TICK_INTERVAL_S = max(0.01, _f("TICK_INTERVAL_S", 2.0))
TICK_INTERVAL_MS = int(round(TICK_INTERVAL_S * 1000))

# Semilla opcional del generador aleatorio (None => no determinista).
SEED = _optional_int("SEED")


# ---------------------------
# Cartera y estrategia
# ---------------------------

# Efectivo inicial de cada sesión.
INITIAL_BALANCE = max(0.0, _f("INITIAL_BALANCE", 100_000.0))

# Parámetros por defecto del cruce de medias.
SHORT_PERIOD = max(1, _i("SHORT_PERIOD", 10))
LONG_PERIOD = max(1, _i("LONG_PERIOD", 30))

# Efectivo comprometido en cada BUY.
TRADE_AMOUNT = max(0.01, _f("TRADE_AMOUNT", 1_000.0))

# Frecuencia de logging del motor (cada cuántos ticks loguear en nivel INFO).
# 0 => desactiva logs intermedios (solo el primero y eventos clave).
LOG_EVERY = max(0, _i("LOG_EVERY", 10))


# ---------------------------
# Comentario de mercado (proveedor externo)
# ---------------------------

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
COMMENTARY_TIMEOUT_S = max(1.0, _f("COMMENTARY_TIMEOUT_S", 30.0))
# Pedir comentario al arrancar el modo live (equivale a --insight)
INSIGHT = _b("INSIGHT", False)


# ---------------------------
# Rutas de proyecto (fuera de src/)
# ---------------------------

# settings.py => .../smabot/src/smabot/settings.py
# parents[2]  => .../smabot/
PROJECT_ROOT = Path(__file__).resolve().parents[2]

REPORTS_DIR = Path(os.getenv("REPORTS_DIR", PROJECT_ROOT / "reports"))


# ---------------------------
# Carpetas de run: <SYMBOL>_<STRATEGY>_<YYYY-MM-DD>_runXX
# ---------------------------

_RUN_SUFFIX = re.compile(r"_run(\d+)$")


def _next_run_number(existing_dirs: Iterable[Path], prefix: str) -> int:
    """Siguiente NN libre para `prefix` (1 si aún no hay ninguno)."""
    taken = [
        int(m.group(1))
        for d in existing_dirs
        if d.name.startswith(prefix) and (m := _RUN_SUFFIX.search(d.name))
    ]
    return max(taken, default=0) + 1


def generate_report_dir(
    symbol: str, strategy_name: str, base_dir: Path | None = None
) -> Path:
    """
    Crea y devuelve `reports/<SYMBOL>_<STRATEGY>_<YYYY-MM-DD>_runXX`.

    La fecha es UTC; XX continúa la numeración de los runs del mismo día.
    """
    root = Path(base_dir) if base_dir is not None else REPORTS_DIR
    day = datetime.now(tz=UTC).strftime("%Y-%m-%d")

    # Solo caracteres seguros para el sistema de ficheros
    parts = [re.sub(r"[^A-Za-z0-9_-]", "", s) for s in (symbol, strategy_name)]
    prefix = f"{parts[0]}_{parts[1]}_{day}_run"

    root.mkdir(parents=True, exist_ok=True)
    siblings = [p for p in root.glob(f"{prefix}*") if p.is_dir()]
    report_dir = root / f"{prefix}{_next_run_number(siblings, prefix):02d}"
    report_dir.mkdir(exist_ok=True)
    return report_dir

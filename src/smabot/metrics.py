# src/smabot/metrics.py
"""
Cálculo de métricas de una simulación y exportación de un `summary.json`.

Uso (desde __main__.py, tras una simulación batch):
-----------------------------------------------------
1) Tomamos la equity curve y los trades de la simulación, ya sea como
   DataFrames en memoria o leyendo los CSVs exportados por el engine:
   - equity_curve.csv  -> columna temporal + columna 'equity'
   - trades.csv        -> para contar trades y sumar el PnL realizado
2) Construimos los retornos por tick (pct_change del equity).
3) Calculamos métricas básicas:
   - total_return (equity_end/equity_start - 1)
   - volatility_per_tick (std de retornos por tick)
   - max_drawdown (mínimo drawdown relativo sobre la curva de equity)
   - n_trades, n_buys, n_sells, realized_pnl, win_rate (sobre ventas)
4) Si se da `output_dir`, guardamos `summary.json` allí.

No se anualiza: los ticks son tiempo simulado (2 s por defecto) y una
anualización sobre ellos no tendría sentido.
"""

import json
import logging
from pathlib import Path

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# === Posibles nombres de columna temporal ===
TIME_CANDIDATES = ["ts", "timestamp", "time", "datetime"]


# --------------------------------------------------------------------------------------
# Normalización de la equity curve
# --------------------------------------------------------------------------------------
def _normalize_equity(df: pd.DataFrame) -> pd.DataFrame:
    """
    - Elimina columnas índice accidentales (p.ej., 'Unnamed: 0').
    - Detecta la columna temporal entre TIME_CANDIDATES.
    - Verifica que exista 'equity' y ordena por tiempo.
    """
    drop_cols = [c for c in df.columns if str(c).startswith("Unnamed")]
    if drop_cols:
        df = df.drop(columns=drop_cols)

    time_col = next((c for c in TIME_CANDIDATES if c in df.columns), None)
    if time_col is None:
        raise ValueError(f"No se encontró columna temporal. Usa alguna de: {TIME_CANDIDATES}")
    if "equity" not in df.columns:
        raise ValueError("La equity curve debe contener la columna 'equity'")

    out = df[[time_col, "equity"]].rename(columns={time_col: "timestamp"})
    if out["timestamp"].dtype.kind in "iuf":
        out["timestamp"] = pd.to_datetime(out["timestamp"], unit="ms", utc=True)
    else:
        out["timestamp"] = pd.to_datetime(out["timestamp"], utc=True, errors="coerce")
    if out["timestamp"].isna().any():
        raise ValueError("Hay timestamps inválidos en la equity curve")
    return out.sort_values("timestamp").reset_index(drop=True)


def _round_or_none(x: float, ndigits: int):
    return None if not np.isfinite(x) else round(float(x), ndigits)


# --------------------------------------------------------------------------------------
# API principal
# --------------------------------------------------------------------------------------
def calculate_metrics(
    equity_curve: pd.DataFrame | str | Path,
    trades: pd.DataFrame | str | Path | None = None,
    output_dir: str | Path | None = None,
) -> dict:
    """
    Calcula métricas a partir de la equity curve (y opcionalmente los trades).

    Parámetros:
      - equity_curve : DataFrame o ruta a equity_curve.csv
      - trades       : DataFrame o ruta a trades.csv (opcional)
      - output_dir   : si se da, se escribe output_dir/summary.json

    Devuelve un dict con las métricas (None para valores no finitos).
    """
    eq_raw = pd.read_csv(equity_curve) if isinstance(equity_curve, (str, Path)) else equity_curve
    if eq_raw.empty:
        raise ValueError("La equity curve está vacía")
    df = _normalize_equity(eq_raw)

    # === 1) Retornos por tick ===
    ret = df["equity"].pct_change().dropna()
    ret_std = float(ret.std()) if len(ret) > 1 else np.nan

    # === 2) Métricas sobre la curva de equity ===
    equity = df["equity"]
    eq_first, eq_last = float(equity.iloc[0]), float(equity.iloc[-1])
    total_return = eq_last / eq_first - 1 if eq_first > 0 else np.nan
    # Drawdown relativo al máximo previo; el peor valor es el más negativo
    max_drawdown = float((equity / equity.cummax() - 1.0).min())

    # === 3) KPIs de trades ===
    if isinstance(trades, (str, Path)):
        trades_df = pd.read_csv(trades)
    else:
        trades_df = trades if trades is not None else pd.DataFrame()

    n_trades = int(len(trades_df))
    n_buys = n_sells = 0
    realized_pnl = 0.0
    win_rate = np.nan
    if n_trades and "side" in trades_df.columns:
        n_buys = int((trades_df["side"] == "BUY").sum())
        n_sells = int((trades_df["side"] == "SELL").sum())
        if "realized_pnl" in trades_df.columns:
            sells = trades_df.loc[trades_df["side"] == "SELL", "realized_pnl"]
            realized_pnl = float(trades_df["realized_pnl"].sum())
            if len(sells) > 0:
                win_rate = float((sells > 0).mean())

    t0 = df["timestamp"].iloc[0]
    t1 = df["timestamp"].iloc[-1]

    metrics = {
        "total_return": _round_or_none(total_return, 6),
        "volatility_per_tick": _round_or_none(ret_std, 6),
        "max_drawdown": _round_or_none(max_drawdown, 6),
        "n_ticks": int(len(df)),
        "n_trades": n_trades,
        "n_buys": n_buys,
        "n_sells": n_sells,
        "realized_pnl": round(realized_pnl, 2),
        "win_rate": _round_or_none(win_rate, 4),
        "equity_start": round(eq_first, 2),
        "equity_end": round(eq_last, 2),
        "start_timestamp": t0.isoformat(),
        "end_timestamp": t1.isoformat(),
    }

    # === 4) Guardar summary.json ===
    if output_dir is not None:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        summary_path = out / "summary.json"
        with summary_path.open("w", encoding="utf-8") as f:
            json.dump(metrics, f, indent=4)
        logger.info("Resumen exportado a %s", summary_path)
    return metrics

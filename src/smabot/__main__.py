# src/smabot/__main__.py
"""
Punto de entrada del paquete `smabot`.

Resumen:
1) CLI + YAML → config efectiva (CLI > YAML > settings).
2) Modo `batch`: N ticks sobre reloj simulado, exportación de CSVs, métricas
   (summary.json) y run_manifest.json en reports/<SYMBOL>_<STRATEGY>_<fecha>_runXX/.
3) Modo `live`: SimulationDriver con ticks en tiempo real durante `duration_s`
   segundos; al terminar se imprime el resumen de la sesión.
"""

from __future__ import annotations

import argparse
import json
import logging
import subprocess
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import UTC, datetime
from pathlib import Path
from shutil import copyfile
from typing import Any
from uuid import uuid4

import yaml

from . import settings
from .commentary import ERROR_PREFIX
from .core import Instrument
from .driver import SimulationDriver
from .engine import run_engine
from .metrics import calculate_metrics
from .strategy import Strategy

DEFAULT_CONFIG = Path("configs/example.yaml")

# --------------------------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------------------------


def _setup_logging(loglevel: str = "INFO", logfile: Path | None = None) -> None:
    level = getattr(logging, loglevel.upper(), logging.INFO)
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)
    if logfile is not None:
        try:
            fh = logging.FileHandler(logfile)
            fh.setLevel(level)
            fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
            logging.getLogger().addHandler(fh)
        except OSError as e:  # pragma: no cover
            logging.getLogger(__name__).warning(f"No se pudo crear FileHandler: {e}")


# --------------------------------------------------------------------------------------
# Config (YAML + CLI)
# --------------------------------------------------------------------------------------


def _load_yaml_config(path: str | Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Config YAML no encontrada: {p}")
    cfg = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{p}: la raíz del YAML debe ser un mapping (secciones mode/strategy/...)")
    return cfg


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="smabot – simulador de cruce de medias (batch/live)")
    p.add_argument("--config", type=str, default=None, help="Ruta a YAML (configs/example.yaml)")
    p.add_argument(
        "--mode",
        type=str,
        choices=["batch", "live"],
        default=None,
        help="Modo de ejecución (sobrescribe YAML).",
    )
    p.add_argument("--symbol", help=f"Instrumento (default settings.SYMBOL={settings.SYMBOL})")
    p.add_argument("--short", type=int, help=f"Periodo SMA corta (default={settings.SHORT_PERIOD})")
    p.add_argument("--long", type=int, help=f"Periodo SMA larga (default={settings.LONG_PERIOD})")
    p.add_argument("--amount", type=float, help=f"Efectivo por BUY (default={settings.TRADE_AMOUNT})")
    p.add_argument("--ticks", type=int, help="Ticks a simular en modo batch (default=500)")
    p.add_argument("--seed", type=int, help="Semilla del generador aleatorio")
    p.add_argument("--duration", type=float, help="Segundos de simulación en modo live (default=60)")
    p.add_argument("--insight", action="store_true", help="Pedir comentario de mercado (live)")
    p.add_argument("--loglevel", default="INFO", help="Nivel log (DEBUG|INFO|WARNING|ERROR)")
    p.add_argument("--logevery", type=int, help=f"Log cada N ticks (default={settings.LOG_EVERY})")
    return p


def _resolve_config(args: argparse.Namespace) -> dict[str, Any]:
    # 1) YAML: el indicado por --config o, si existe, el de ejemplo del repo
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG.is_file():
        config_path = str(DEFAULT_CONFIG)
    ycfg: dict[str, Any] = _load_yaml_config(config_path)

    # 2) Defaults desde settings + 3) mezclar YAML
    mode = ycfg.get("mode", "batch")
    instrument = ycfg.get("instrument", {}) or {}
    strat = ycfg.get("strategy", {}) or {}
    sim = ycfg.get("simulation", {}) or {}
    execution = ycfg.get("execution", {}) or {}

    symbol = instrument.get("symbol", settings.SYMBOL)
    short_period = int(strat.get("short_period", settings.SHORT_PERIOD))
    long_period = int(strat.get("long_period", settings.LONG_PERIOD))
    trade_amount = float(strat.get("trade_amount", settings.TRADE_AMOUNT))
    ticks = int(sim.get("ticks", 500))
    seed = sim.get("seed", settings.SEED)
    initial_balance = float(sim.get("initial_balance", settings.INITIAL_BALANCE))
    history = int(sim.get("history", settings.INITIAL_HISTORY))
    interval_s = float(sim.get("interval_s", settings.TICK_INTERVAL_S))
    duration_s = float(sim.get("duration_s", 60.0))
    log_every = int(execution.get("log_every", settings.LOG_EVERY))
    insight = bool(execution.get("insight", settings.INSIGHT))

    # 4) Overrides CLI
    mode = args.mode or mode
    symbol = (args.symbol or symbol).upper()
    short_period = args.short if args.short is not None else short_period
    long_period = args.long if args.long is not None else long_period
    trade_amount = args.amount if args.amount is not None else trade_amount
    ticks = args.ticks if args.ticks is not None else ticks
    seed = args.seed if args.seed is not None else seed
    duration_s = args.duration if args.duration is not None else duration_s
    log_every = args.logevery if args.logevery is not None else log_every
    insight = args.insight or insight

    return {
        "mode": mode,
        "instrument": {"symbol": symbol},
        "strategy": {
            "short_period": short_period,
            "long_period": long_period,
            "trade_amount": trade_amount,
        },
        "simulation": {
            "ticks": ticks,
            "seed": None if seed is None else int(seed),
            "initial_balance": initial_balance,
            "history": history,
            "interval_s": interval_s,
            "duration_s": duration_s,
        },
        "execution": {"log_every": log_every},
        "flags": {"loglevel": args.loglevel or "INFO", "insight": insight},
        "raw_yaml": ycfg,
        "config_path": config_path,
    }


# --------------------------------------------------------------------------------------
# Run manifest (trazabilidad)
# --------------------------------------------------------------------------------------


_MANIFEST_SECTIONS = ("mode", "instrument", "strategy", "simulation", "execution", "flags")


def _git_commit_hash() -> str | None:
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return proc.stdout.strip() or None


def _write_run_manifest(
    reports_dir: Path,
    run_id: str,
    cfg: dict[str, Any],
    outputs: dict[str, Any],
    metrics: dict[str, Any] | None,
) -> Path:
    """Deja en el run todo lo necesario para reproducirlo (config, commit, salidas)."""
    config_path = cfg.get("config_path")
    config_copy = None
    if config_path and Path(config_path).exists():
        config_copy = "config_used.yaml"
        copyfile(config_path, reports_dir / config_copy)

    manifest: dict[str, Any] = {
        "id": run_id,
        "timestamp_utc": datetime.now(tz=UTC).isoformat(),
        "git_commit": _git_commit_hash(),
        "config_path": config_path,
        "config_yaml_copy": config_copy,
        "config_effective": {k: cfg.get(k) for k in _MANIFEST_SECTIONS},
        "outputs": {name: str(path) for name, path in outputs.items()},
    }
    if metrics is not None:
        manifest["metrics"] = metrics

    path = reports_dir / "run_manifest.json"
    path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")
    logging.info("Run manifest escrito en %s", path)
    return path


# --------------------------------------------------------------------------------------
# Modos
# --------------------------------------------------------------------------------------


def _run_batch(cfg: dict[str, Any], strategy: Strategy, run_id: str) -> None:
    log = logging.getLogger(__name__)
    symbol = cfg["instrument"]["symbol"]
    sim = cfg["simulation"]

    reports_dir: Path = settings.generate_report_dir(symbol=symbol, strategy_name=strategy.name)
    _setup_logging(loglevel=cfg["flags"]["loglevel"], logfile=reports_dir / "log.txt")

    try:
        result = run_engine(
            strategy,
            symbol,
            sim["ticks"],
            seed=sim["seed"],
            initial_balance=sim["initial_balance"],
            history=sim["history"],
            interval_ms=int(round(sim["interval_s"] * 1000)),
            log_every=cfg["execution"]["log_every"],
            reports_dir=reports_dir,
            run_id=run_id,
        )
    except Exception:
        log.exception("Error durante la simulación batch")
        raise

    s = result.summary()
    print("\n=== RESUMEN FINAL ===")
    print(
        f"Equity final: {s['equity']:.2f} | PnL: {s['pnl']:.2f} ({s['pnl_pct']:.2f}%) | "
        f"Realized: {s['realized_pnl']:.2f} | Trades: {s['n_trades']} | "
        f"Señales: {result.signals}"
    )

    outputs: dict[str, Any] = {
        "price_series_csv": reports_dir / "price_series.csv",
        "equity_curve_csv": reports_dir / "equity_curve.csv",
        "trades_csv": reports_dir / "trades.csv",
        "summary_json": reports_dir / "summary.json",
        "log_file": reports_dir / "log.txt",
    }

    summary: dict[str, Any] | None = None
    eq_df = result.equity_curve_dataframe()
    if eq_df.empty:
        log.warning("Equity curve vacía (0 ticks); no se calculan métricas.")
    else:
        summary = calculate_metrics(eq_df, result.trades_dataframe(), output_dir=reports_dir)
        print("\nMétricas de la simulación:")
        for k, v in summary.items():
            print(f"{k:25s}: {v}")

    _write_run_manifest(reports_dir, run_id, cfg, outputs, summary)
    print(f"\nReports en {reports_dir}")


def _await_insight(future: Future, timeout: float) -> str:
    """Texto del comentario; si no llega a tiempo, mensaje de error (no lanza)."""
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logging.getLogger(__name__).warning("Comentario de mercado sin respuesta tras %.0fs", timeout)
        return ERROR_PREFIX + f"no response after {timeout:.0f}s"


def _run_live(cfg: dict[str, Any], strategy: Strategy) -> None:
    sim = cfg["simulation"]
    driver = SimulationDriver(
        cfg["instrument"]["symbol"],
        strategy,
        interval_s=sim["interval_s"],
        initial_balance=sim["initial_balance"],
        history=sim["history"],
        seed=sim["seed"],
    )
    try:
        insight = driver.request_commentary() if cfg["flags"]["insight"] else None
        driver.start()
        try:
            deadline = time.monotonic() + sim["duration_s"]
            while driver.running and time.monotonic() < deadline:
                time.sleep(min(0.5, sim["interval_s"]))
        except KeyboardInterrupt:
            print("\nInterrumpido por el usuario.")
        finally:
            driver.stop()

        snap = driver.get_snapshot()
        s = snap.summary()
        print("\n=== RESUMEN SESIÓN ===")
        print(
            f"{snap.instrument.name} ({snap.instrument.symbol}) | ticks={snap.ticks} | "
            f"precio={snap.last_price:.4f} | equity={s['equity']:.2f} | PnL={s['pnl']:.2f} "
            f"({s['pnl_pct']:.2f}%) | trades={len(snap.trades)}"
        )
        for t in snap.trades:
            print(f"  {t.side:4s} {t.qty:>8.0f} @ {t.price:.4f} ({t.note})")
        if snap.last_error:
            print(f"Simulación detenida por error: {snap.last_error}")
        if insight is not None:
            print("\n=== COMENTARIO DE MERCADO ===")
            print(_await_insight(insight, settings.COMMENTARY_TIMEOUT_S + 5))
    finally:
        driver.close()


# --------------------------------------------------------------------------------------
# Programa principal
# --------------------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    cfg = _resolve_config(args)

    run_id = str(uuid4())
    print(f"[smabot] run_id generado: {run_id}")
    _setup_logging(loglevel=cfg["flags"]["loglevel"])

    strategy = Strategy(**cfg["strategy"])
    instrument = Instrument.from_symbol(cfg["instrument"]["symbol"], settings.INSTRUMENTS)
    logging.info(
        "Run config: mode=%s instrument=%s (%s) strategy=%s simulation=%s config_path=%s",
        cfg["mode"],
        instrument.symbol,
        instrument.name,
        strategy,
        cfg["simulation"],
        cfg["config_path"],
    )

    if cfg["mode"] == "live":
        _run_live(cfg, strategy)
    else:
        _run_batch(cfg, strategy, run_id)

    print(f"\n[smabot] run_id: {run_id}")


if __name__ == "__main__":
    main()

# tests/test_cli.py
"""
Tests del punto de entrada (`python -m smabot`): config efectiva, batch y live.

Se ejecuta en un directorio temporal (sin configs/example.yaml) y con
REPORTS_DIR redirigido, para no ensuciar el repo.
"""

import json
from concurrent.futures import Future

import pytest

from smabot import __main__ as cli
from smabot import settings
from smabot.commentary import ERROR_PREFIX
from smabot.driver import SimulationDriver


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings, "REPORTS_DIR", tmp_path / "reports")
    return tmp_path


def test_resolve_config_cli_overrides_yaml(isolated):
    cfg_path = isolated / "cfg.yaml"
    cfg_path.write_text(
        "mode: batch\n"
        "instrument: {symbol: titan}\n"
        "strategy: {short_period: 4, long_period: 12, trade_amount: 250}\n"
        "simulation: {ticks: 10, seed: 3}\n",
        encoding="utf-8",
    )
    args = cli._build_parser().parse_args(["--config", str(cfg_path), "--long", "15"])
    cfg = cli._resolve_config(args)

    assert cfg["instrument"]["symbol"] == "TITAN"
    assert cfg["strategy"] == {"short_period": 4, "long_period": 15, "trade_amount": 250.0}
    assert cfg["simulation"]["ticks"] == 10
    assert cfg["simulation"]["seed"] == 3


def test_missing_config_file_fails(isolated):
    args = cli._build_parser().parse_args(["--config", "no-existe.yaml"])
    with pytest.raises(FileNotFoundError):
        cli._resolve_config(args)


def test_batch_run_writes_reports(isolated):
    cli.main(["--ticks", "60", "--seed", "5", "--short", "3", "--long", "8", "--loglevel", "WARNING"])

    run_dirs = list((isolated / "reports").iterdir())
    assert len(run_dirs) == 1
    run_dir = run_dirs[0]
    assert run_dir.name.startswith("GEM_SMA3x8_")

    for name in ("price_series.csv", "equity_curve.csv", "trades.csv", "summary.json", "run_manifest.json"):
        assert (run_dir / name).exists(), f"Falta {name}"

    manifest = json.loads((run_dir / "run_manifest.json").read_text(encoding="utf-8"))
    assert manifest["config_effective"]["strategy"]["short_period"] == 3
    assert manifest["metrics"]["n_ticks"] == 60


def test_insight_flag_defaults_to_environment_setting(isolated, monkeypatch):
    monkeypatch.setattr(settings, "INSIGHT", True)
    cfg = cli._resolve_config(cli._build_parser().parse_args([]))
    assert cfg["flags"]["insight"] is True


def test_insight_timeout_becomes_error_text():
    text = cli._await_insight(Future(), timeout=0.01)
    assert text.startswith(ERROR_PREFIX)


def test_live_run_closes_driver_when_commentary_never_arrives(isolated, monkeypatch, capsys):
    closed = []

    class SilentCommentaryDriver(SimulationDriver):
        def request_commentary(self):
            return Future()

        def close(self):
            closed.append(True)
            super().close()

    monkeypatch.setattr(cli, "SimulationDriver", SilentCommentaryDriver)
    monkeypatch.setattr(settings, "COMMENTARY_TIMEOUT_S", -4.9)

    cli.main(["--mode", "live", "--duration", "0.05", "--insight", "--seed", "1", "--loglevel", "WARNING"])

    assert closed == [True]
    assert ERROR_PREFIX in capsys.readouterr().out

"""Tests for the pinforge command-line entry point."""

import json
import os
import signal

import pytest

from pinforge.main import build_parser, main

HEADER = "<DATE>\t<TIME>\t<OPEN>\t<HIGH>\t<LOW>\t<CLOSE>\t<TICKVOL>\t<VOL>\t<SPREAD>"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for var in ["PINFORGE_DATA_DIR", "PINFORGE_SYMBOL", "PINFORGE_CSV_FILTER", "PINFORGE_TOP_N"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PINFORGE_RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.setenv("PINFORGE_WORKERS", "1")


def _bar_file(tmp_path):
    rows = [
        f"2024.01.02\t{h:02d}:00:00\t2060.00\t2061.00\t2059.00\t2060.50\t100\t0\t12"
        for h in range(24)
    ]
    path = tmp_path / "data" / "XAUUSD_H1.csv"
    path.parent.mkdir()
    path.write_text("\n".join([HEADER, *rows]) + "\n")
    return path


def _three_day_file(tmp_path):
    rows = [
        f"2024.03.{d:02d}\t{h:02d}:00:00\t2060.00\t2061.00\t2059.00\t2060.50\t100\t0\t12"
        for d in (1, 2, 3)
        for h in range(24)
    ]
    path = tmp_path / "XAUUSD_H1.csv"
    path.write_text("\n".join([HEADER, *rows]) + "\n")
    return path


def _env(tmp_path):
    return ["--env", str(tmp_path / "missing.env")]


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_optimize_requires_space(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["optimize"])

    def test_dates(self):
        args = build_parser().parse_args(["--start", "2024-01-02", "backtest"])
        assert args.start.year == 2024 and args.start.day == 2

    def test_end_date_covers_whole_day(self):
        args = build_parser().parse_args(["--end", "2024-03-02", "backtest"])
        assert (args.end.day, args.end.hour, args.end.minute) == (2, 23, 59)


class TestBacktestCommand:
    def test_writes_result_json(self, tmp_path):
        bars = _bar_file(tmp_path)
        out = tmp_path / "result.json"
        code = main([*_env(tmp_path), "--bars", str(bars), "backtest", "--output", str(out)])
        assert code == 0
        data = json.loads(out.read_text())
        assert data["trades"] == []
        assert data["overall"]["total_trades"] == 0
        assert data["parameters"]["symbol"] == "XAUUSD"

    def test_end_date_is_inclusive(self, tmp_path):
        bars = _three_day_file(tmp_path)
        out = tmp_path / "result.json"
        code = main([
            *_env(tmp_path), "--bars", str(bars),
            "--start", "2024-03-01", "--end", "2024-03-02",
            "backtest", "--output", str(out),
        ])
        assert code == 0
        data = json.loads(out.read_text())
        assert data["start_time"] == "2024-03-01T00:00:00+00:00"
        assert data["end_time"] == "2024-03-02T23:00:00+00:00"

    def test_finds_bar_file_in_data_dir(self, tmp_path, monkeypatch):
        _bar_file(tmp_path)
        monkeypatch.setenv("PINFORGE_DATA_DIR", str(tmp_path / "data"))
        assert main([*_env(tmp_path), "backtest"]) == 0

    def test_missing_bars_exit_code(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINFORGE_DATA_DIR", str(tmp_path / "empty"))
        assert main([*_env(tmp_path), "backtest"]) == 2

    def test_bad_env_exit_code(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINFORGE_TOP_N", "many")
        assert main([*_env(tmp_path), "backtest"]) == 2


class TestOptimizeCommand:
    def test_sweep_writes_final_file(self, tmp_path):
        bars = _bar_file(tmp_path)
        space = tmp_path / "space.json"
        space.write_text(json.dumps({"max_body_pct": [20, 25]}))
        handler_before = signal.getsignal(signal.SIGINT)

        code = main([*_env(tmp_path), "--bars", str(bars), "optimize", "--space", str(space)])

        assert code == 0
        finals = list((tmp_path / "results").glob("final_*.json"))
        assert len(finals) == 1
        assert [r["index"] for r in json.loads(finals[0].read_text())] == [0, 1]
        assert signal.getsignal(signal.SIGINT) is handler_before

    def test_resume_from_checkpoint(self, tmp_path):
        bars = _bar_file(tmp_path)
        space = tmp_path / "space.json"
        space.write_text(json.dumps({"max_body_pct": [20, 25]}))
        main([*_env(tmp_path), "--bars", str(bars), "optimize", "--space", str(space)])
        (first,) = (tmp_path / "results").glob("final_*.json")

        code = main([
            *_env(tmp_path), "--bars", str(bars),
            "optimize", "--space", str(space), "--resume", str(first),
        ])
        assert code == 0
        assert len(list((tmp_path / "results").glob("final_*.json"))) == 2

"""Tests for pinforge.data.bar_loader — tab-delimited bar exports."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pinforge.config import ConfigurationError
from pinforge.data.bar_loader import find_bar_file, load_bars, read_bar_frame

HEADER = "<DATE>\t<TIME>\t<OPEN>\t<HIGH>\t<LOW>\t<CLOSE>\t<TICKVOL>\t<VOL>\t<SPREAD>"


# ── Helpers ──────────────────────────────────────────────────────────────


def _row(date, time, o, h, l, c, tick=100, vol=0, spread=12):
    return "\t".join(str(v) for v in (date, time, o, h, l, c, tick, vol, spread))


def _write_bars(path, rows):
    path.write_text("\n".join([HEADER, *rows]) + "\n")
    return path


def _sample(tmp_path, name="XAUUSD_M15.csv"):
    return _write_bars(tmp_path / name, [
        _row("2024.01.02", "01:00:00", "2062.55", "2064.10", "2061.20", "2063.80"),
        _row("2024.01.02", "01:15:00", "2063.80", "2065.00", "2063.10", "2064.45"),
        _row("2024.01.03", "09:30:00", "2070.00", "2071.25", "2069.05", "2070.90"),
    ])


class TestLoadBars:
    def test_parses_rows(self, tmp_path):
        bars = load_bars(_sample(tmp_path))
        assert len(bars) == 3
        first = bars[0]
        assert first.time == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)
        assert first.open == Decimal("2062.55")
        assert first.high == Decimal("2064.10")
        assert first.close == Decimal("2063.80")
        assert first.tick_volume == 100
        assert first.spread == 12

    def test_prices_are_exact_decimals(self, tmp_path):
        bars = load_bars(_sample(tmp_path))
        assert str(bars[2].low) == "2069.05"

    def test_time_without_seconds(self, tmp_path):
        path = _write_bars(tmp_path / "XAUUSD.csv", [
            _row("2024.01.02", "01:00", 1, 2, 0.5, 1.5),
        ])
        assert load_bars(path)[0].time == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)

    def test_start_end_filter(self, tmp_path):
        bars = load_bars(
            _sample(tmp_path),
            start=datetime(2024, 1, 2, 1, 10),
            end=datetime(2024, 1, 3, tzinfo=timezone.utc),
        )
        assert [b.time.minute for b in bars] == [15]

    def test_sorted_and_deduplicated(self, tmp_path):
        path = _write_bars(tmp_path / "XAUUSD.csv", [
            _row("2024.01.02", "02:00:00", 3, 4, 2, 3),
            _row("2024.01.02", "01:00:00", 1, 2, 0.5, 1.5),
            _row("2024.01.02", "02:00:00", 9, 9, 9, 9),
        ])
        bars = load_bars(path)
        assert [b.time.hour for b in bars] == [1, 2]
        assert bars[1].open == Decimal("3")

    def test_empty_file(self, tmp_path):
        path = _write_bars(tmp_path / "XAUUSD.csv", [])
        assert load_bars(path) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_bars(tmp_path / "nope.csv")

    def test_bad_date(self, tmp_path):
        path = _write_bars(tmp_path / "XAUUSD.csv", [
            _row("02/01/2024", "01:00:00", 1, 2, 0.5, 1.5),
        ])
        with pytest.raises(ConfigurationError, match="Malformed"):
            load_bars(path)

    def test_bad_price(self, tmp_path):
        path = _write_bars(tmp_path / "XAUUSD.csv", [
            _row("2024.01.02", "01:00:00", "abc", 2, 0.5, 1.5),
        ])
        with pytest.raises(ConfigurationError, match="Invalid price"):
            load_bars(path)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "XAUUSD.csv"
        path.write_text(HEADER + "\n2024.01.02\t01:00:00\t1\t2\n")
        with pytest.raises(ConfigurationError):
            load_bars(path)


class TestReadBarFrame:
    def test_timestamp_column(self, tmp_path):
        df = read_bar_frame(_sample(tmp_path))
        assert str(df["timestamp"].dt.tz) == "UTC"
        assert df["tick_volume"].dtype == "int64"


class TestFindBarFile:
    def test_first_match(self, tmp_path):
        _sample(tmp_path, "XAUUSD_M15_2023.csv")
        _sample(tmp_path, "XAUUSD_M15_2024.csv")
        _sample(tmp_path, "EURUSD_M15.csv")
        assert find_bar_file(tmp_path, "XAUUSD").name == "XAUUSD_M15_2023.csv"

    def test_filter(self, tmp_path):
        _sample(tmp_path, "XAUUSD_M15_2023.csv")
        _sample(tmp_path, "XAUUSD_M15_2024.csv")
        assert find_bar_file(tmp_path, "XAUUSD", "2024").name == "XAUUSD_M15_2024.csv"

    def test_no_match(self, tmp_path):
        _sample(tmp_path, "EURUSD_M15.csv")
        with pytest.raises(ConfigurationError, match="XAUUSD"):
            find_bar_file(tmp_path, "XAUUSD")

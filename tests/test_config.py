"""Tests for pinforge.config — environment loading, profiles and parameter spaces."""

import json
import os
from decimal import Decimal

import pytest

from pinforge.config import (
    ConfigurationError,
    load_config,
    load_parameter_space,
    load_profile,
    resolve_workers,
)
from pinforge.strategy.models import AccountRisk, StrategyParameters


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure PinForge env vars are cleared between tests.

    ``load_dotenv`` writes straight into ``os.environ``, so each test gets
    its own copy.
    """
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for var in [
        "PINFORGE_DATA_DIR",
        "PINFORGE_SYMBOL",
        "PINFORGE_CSV_FILTER",
        "PINFORGE_RESULTS_DIR",
        "PINFORGE_CHECKPOINT_INTERVAL",
        "PINFORGE_MIN_TRADES",
        "PINFORGE_TOP_N",
        "PINFORGE_WORKERS",
        "LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)


def _no_env_file(tmp_path):
    return str(tmp_path / "missing.env")


def _write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = load_config(_no_env_file(tmp_path))
        assert cfg.data_dir == "data"
        assert cfg.symbol == "XAUUSD"
        assert cfg.csv_filter == ""
        assert cfg.results_dir == "results"
        assert cfg.checkpoint_interval == 500
        assert cfg.min_trades == 50
        assert cfg.top_n == 10
        assert cfg.workers == (os.cpu_count() or 1)
        assert cfg.log_level == "INFO"

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINFORGE_SYMBOL", "EURUSD")
        monkeypatch.setenv("PINFORGE_CHECKPOINT_INTERVAL", "250")
        monkeypatch.setenv("PINFORGE_WORKERS", "3")
        cfg = load_config(_no_env_file(tmp_path))
        assert cfg.symbol == "EURUSD"
        assert cfg.checkpoint_interval == 250
        assert cfg.workers == 3

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("PINFORGE_MIN_TRADES=20\nPINFORGE_RESULTS_DIR=out\n")
        cfg = load_config(str(env))
        assert cfg.min_trades == 20
        assert cfg.results_dir == "out"

    def test_invalid_integer(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINFORGE_TOP_N", "ten")
        with pytest.raises(ConfigurationError, match="PINFORGE_TOP_N"):
            load_config(_no_env_file(tmp_path))

    def test_interval_must_be_positive(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINFORGE_CHECKPOINT_INTERVAL", "0")
        with pytest.raises(ConfigurationError, match="PINFORGE_CHECKPOINT_INTERVAL"):
            load_config(_no_env_file(tmp_path))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_no_env_file(tmp_path))
        with pytest.raises(AttributeError):
            cfg.symbol = "BTCUSD"


class TestResolveWorkers:
    def test_auto(self):
        assert resolve_workers("auto") == (os.cpu_count() or 1)

    def test_number(self):
        assert resolve_workers("4") == 4
        assert resolve_workers(2) == 2

    def test_non_positive_means_auto(self):
        assert resolve_workers(0) == (os.cpu_count() or 1)

    def test_garbage(self):
        with pytest.raises(ConfigurationError, match="workers"):
            resolve_workers("lots")


class TestLoadProfile:
    def test_no_path_gives_defaults(self):
        params, account = load_profile()
        assert params == StrategyParameters()
        assert account == AccountRisk()

    def test_overrides(self, tmp_path):
        path = _write_json(tmp_path / "profile.json", {
            "strategy": {
                "max_body_pct": 30,
                "ema_list": [20, 50],
                "no_trading_hours_limit": False,
                "near_ema_threshold": "0.75",
            },
            "account": {"initial_capital": 50000},
        })
        params, account = load_profile(path)
        assert params.max_body_pct == Decimal("30")
        assert params.ema_list == (20, 50)
        assert params.no_trading_hours_limit is False
        assert params.near_ema_threshold == Decimal("0.75")
        assert account.initial_capital == Decimal("50000")
        assert account.max_loss_per_trade_pct == Decimal("1")

    def test_unknown_key(self, tmp_path):
        path = _write_json(tmp_path / "profile.json", {"strategy": {"max_bodee": 30}})
        with pytest.raises(ConfigurationError, match="max_bodee"):
            load_profile(path)

    def test_invalid_value(self, tmp_path):
        path = _write_json(tmp_path / "profile.json", {"strategy": {"max_body_pct": 150}})
        with pytest.raises(ConfigurationError, match="max_body_pct"):
            load_profile(path)

    @pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
    def test_flag_requires_json_boolean(self, tmp_path, value):
        path = _write_json(tmp_path / "profile.json", {"strategy": {"no_trading_hours_limit": value}})
        with pytest.raises(ConfigurationError, match="true or false"):
            load_profile(path)

    def test_bad_whole_number(self, tmp_path):
        path = _write_json(tmp_path / "profile.json", {"strategy": {"atr_period": "fourteen"}})
        with pytest.raises(ConfigurationError, match="whole number"):
            load_profile(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_profile(tmp_path / "nope.json")

    def test_bad_json(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_profile(bad)


class TestLoadParameterSpace:
    def test_lists_ranges_and_scalars(self, tmp_path):
        path = _write_json(tmp_path / "space.json", {
            "max_body_pct": [20, 25],
            "near_ema_threshold": {"start": "0.5", "end": "0.7", "step": "0.1"},
            "risk_reward_ratio": 3,
        })
        space = load_parameter_space(path)
        assert space.max_body_pct == (Decimal(20), Decimal(25))
        assert space.near_ema_threshold == (Decimal("0.5"), Decimal("0.6"), Decimal("0.7"))
        assert space.risk_reward_ratio == (Decimal(3),)
        assert space.total_combinations() == 6

    def test_unknown_axis(self, tmp_path):
        path = _write_json(tmp_path / "space.json", {"leverage": [10, 20]})
        with pytest.raises(ConfigurationError, match="leverage"):
            load_parameter_space(path)

    def test_incomplete_range(self, tmp_path):
        path = _write_json(tmp_path / "space.json", {"max_body_pct": {"start": 10, "end": 20}})
        with pytest.raises(ConfigurationError, match="step"):
            load_parameter_space(path)

    def test_empty_axis(self, tmp_path):
        path = _write_json(tmp_path / "space.json", {"max_body_pct": []})
        with pytest.raises(ConfigurationError, match="max_body_pct"):
            load_parameter_space(path)

"""PinForge — application configuration.

Loads .env variables into a typed config object, and reads the JSON
strategy profile and parameter-space files used by the CLI.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised for malformed input or invalid settings.

    Fatal to a single backtest run; the caller decides how to report it.
    """


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    data_dir: str
    symbol: str
    csv_filter: str
    results_dir: str
    checkpoint_interval: int
    min_trades: int
    top_n: int
    workers: int
    log_level: str


def _env_int(name: str, default: str, minimum: int = 0) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def resolve_workers(raw: str | int) -> int:
    """Turn a worker setting (``"auto"`` or a number) into a pool size."""
    cpu_count = os.cpu_count() or 1
    if isinstance(raw, str):
        if raw.strip().lower() == "auto":
            return cpu_count
        try:
            raw = int(raw)
        except ValueError:
            raise ConfigurationError(f"workers must be 'auto' or an integer, got '{raw}'") from None
    if raw <= 0:
        return cpu_count
    return raw


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable has a default; invalid numbers raise
    ``ConfigurationError`` naming the offending variable.
    """
    load_dotenv(dotenv_path=env_path)

    return Config(
        data_dir=os.environ.get("PINFORGE_DATA_DIR", "data"),
        symbol=os.environ.get("PINFORGE_SYMBOL", "XAUUSD"),
        csv_filter=os.environ.get("PINFORGE_CSV_FILTER", ""),
        results_dir=os.environ.get("PINFORGE_RESULTS_DIR", "results"),
        checkpoint_interval=_env_int("PINFORGE_CHECKPOINT_INTERVAL", "500", minimum=1),
        min_trades=_env_int("PINFORGE_MIN_TRADES", "50"),
        top_n=_env_int("PINFORGE_TOP_N", "10", minimum=1),
        workers=resolve_workers(os.environ.get("PINFORGE_WORKERS", "auto")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


# ── JSON profiles ────────────────────────────────────────────────────────


def _coerce(value, template):
    """Convert a JSON value to the type of the dataclass default *template*."""
    if isinstance(template, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"expected true or false, got {value!r}")
        return value
    if isinstance(template, Decimal):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ConfigurationError(f"expected a decimal number, got {value!r}") from None
    try:
        if isinstance(template, int):
            return int(value)
        if isinstance(template, tuple):
            return tuple(int(v) for v in value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"expected whole number(s), got {value!r}") from None
    return value


def _overlay(base, section: dict, label: str):
    known = {f.name for f in fields(base)}
    unknown = set(section) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {label} setting(s): {', '.join(sorted(unknown))}"
        )
    changes = {
        name: _coerce(value, getattr(base, name)) for name, value in section.items()
    }
    return replace(base, **changes)


def _read_json(path: str | Path) -> dict:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from None
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return data


def load_profile(path: str | Path | None = None):
    """Load ``(StrategyParameters, AccountRisk)`` from a JSON profile.

    The file may hold a ``"strategy"`` and an ``"account"`` object; each
    key overrides the corresponding default.  With no *path* the defaults
    are returned unchanged.
    """
    from pinforge.strategy.models import AccountRisk, StrategyParameters

    params = StrategyParameters()
    account = AccountRisk()
    if path is not None:
        data = _read_json(path)
        params = _overlay(params, data.get("strategy", {}), "strategy")
        account = _overlay(account, data.get("account", {}), "account")
    params.validate()
    account.validate()
    return params, account


def load_parameter_space(path: str | Path):
    """Load a ``ParameterSpace`` from JSON.

    Each axis is either a list of values or an inclusive
    ``{"start": .., "end": .., "step": ..}`` range.
    """
    from pinforge.optimizer.space import AXES, ParameterSpace, set_range

    data = _read_json(path)
    unknown = set(data) - set(AXES)
    if unknown:
        raise ConfigurationError(f"Unknown parameter axis: {', '.join(sorted(unknown))}")

    axes: dict[str, tuple] = {}
    for name, axis in data.items():
        if isinstance(axis, dict):
            try:
                values = set_range(axis["start"], axis["end"], axis["step"])
            except KeyError as exc:
                raise ConfigurationError(f"Range for '{name}' is missing {exc}") from None
        elif isinstance(axis, list):
            values = axis
        else:
            values = [axis]
        axes[name] = tuple(Decimal(str(v)) for v in values)

    space = ParameterSpace(**axes)
    space.validate()
    return space

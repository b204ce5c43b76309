"""Parameter space — seven tunable axes and their lazy Cartesian product."""

import itertools
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from typing import Iterator, Union

from pinforge.config import ConfigurationError
from pinforge.strategy.models import AccountRisk, StrategyParameters

Number = Union[int, Decimal, str, float]

# Enumeration order: the last axis varies fastest.
AXES: tuple[str, ...] = (
    "max_body_pct",
    "min_longer_wick_pct",
    "max_shorter_wick_pct",
    "near_ema_threshold",
    "stop_loss_atr_ratio",
    "risk_reward_ratio",
    "max_loss_per_trade_pct",
)

_ACCOUNT_AXES = {"max_loss_per_trade_pct"}


def set_range(start: Number, end: Number, step: Number) -> list[Decimal]:
    """Inclusive range ``start, start+step, ... <= end`` as Decimals.

    Decimal arithmetic keeps ``set_range("0.5", "0.8", "0.1")`` exact.
    """
    start, end, step = (Decimal(str(v)) for v in (start, end, step))
    if step <= 0:
        raise ConfigurationError(f"range step must be positive, got {step}")
    values: list[Decimal] = []
    value = start
    while value <= end:
        values.append(value)
        value += step
    return values


@dataclass(frozen=True)
class Combination:
    """One point of the parameter space, numbered in enumeration order."""

    index: int
    max_body_pct: Decimal
    min_longer_wick_pct: Decimal
    max_shorter_wick_pct: Decimal
    near_ema_threshold: Decimal
    stop_loss_atr_ratio: Decimal
    risk_reward_ratio: Decimal
    max_loss_per_trade_pct: Decimal

    def values(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in AXES}

    def apply(
        self,
        base_params: StrategyParameters,
        base_account: AccountRisk,
    ) -> tuple[StrategyParameters, AccountRisk]:
        """Overlay this point on the base settings."""
        strategy_changes = {k: v for k, v in self.values().items() if k not in _ACCOUNT_AXES}
        account_changes = {k: v for k, v in self.values().items() if k in _ACCOUNT_AXES}
        return replace(base_params, **strategy_changes), replace(base_account, **account_changes)

    def describe(self) -> str:
        return f"#{self.index} " + " ".join(f"{k}={v}" for k, v in self.values().items())


def _default(name: str) -> tuple[Decimal, ...]:
    source = AccountRisk() if name in _ACCOUNT_AXES else StrategyParameters()
    return (getattr(source, name),)


@dataclass(frozen=True)
class ParameterSpace:
    """Candidate values per axis.  An unset axis holds the default value."""

    max_body_pct: tuple[Decimal, ...] = _default("max_body_pct")
    min_longer_wick_pct: tuple[Decimal, ...] = _default("min_longer_wick_pct")
    max_shorter_wick_pct: tuple[Decimal, ...] = _default("max_shorter_wick_pct")
    near_ema_threshold: tuple[Decimal, ...] = _default("near_ema_threshold")
    stop_loss_atr_ratio: tuple[Decimal, ...] = _default("stop_loss_atr_ratio")
    risk_reward_ratio: tuple[Decimal, ...] = _default("risk_reward_ratio")
    max_loss_per_trade_pct: tuple[Decimal, ...] = _default("max_loss_per_trade_pct")

    def __post_init__(self) -> None:
        for f in fields(self):
            values = getattr(self, f.name)
            object.__setattr__(self, f.name, tuple(Decimal(str(v)) for v in values))

    def validate(self) -> None:
        empty = [name for name in AXES if not getattr(self, name)]
        if empty:
            raise ConfigurationError(f"Parameter axis has no values: {', '.join(empty)}")

    def total_combinations(self) -> int:
        total = 1
        for name in AXES:
            total *= len(getattr(self, name))
        return total

    def combinations(self) -> Iterator[Combination]:
        """Yield every combination lazily, never materialising the product."""
        self.validate()
        product = itertools.product(*(getattr(self, name) for name in AXES))
        for index, values in enumerate(product):
            yield Combination(index, *values)

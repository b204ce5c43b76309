"""Strategy data models — typed representations for bars, settings and signals."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pinforge.config import ConfigurationError

Direction = Literal["long", "short"]


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar for strategy consumption.

    Prices are fixed-point ``Decimal``; *time* is timezone-aware UTC.
    """

    time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    tick_volume: int = 0
    volume: int = 0
    spread: int = 0

    @property
    def total_range(self) -> Decimal:
        return self.high - self.low

    @property
    def body_size(self) -> Decimal:
        return abs(self.close - self.open)

    @property
    def upper_wick(self) -> Decimal:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> Decimal:
        return min(self.open, self.close) - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def utc_hour(self) -> int:
        return self.time.hour


@dataclass(frozen=True)
class StrategyParameters:
    """Pin-Bar rule thresholds for one simulation run.

    Percentages are expressed 0–100.  Defaults are the XAUUSD M15 profile.
    """

    symbol: str = "XAUUSD"
    contract_size: Decimal = Decimal("100")

    # Pin-bar shape
    max_body_pct: Decimal = Decimal("25")
    min_longer_wick_pct: Decimal = Decimal("45")
    max_shorter_wick_pct: Decimal = Decimal("35")
    min_wick_atr_ratio: Decimal = Decimal("0")
    min_bar_range: Decimal = Decimal("0.8")
    require_direction_match: bool = False

    # Trend / proximity
    base_ema: int = 200
    ema_list: tuple[int, ...] = (20, 60, 80, 100, 200)
    near_ema_threshold: Decimal = Decimal("0.6")
    atr_period: int = 14

    # Trend strength; min_adx 0 switches the ADX rule off
    min_adx: Decimal = Decimal("0")
    adx_period: int = 14
    low_adx_risk_reward_ratio: Decimal = Decimal("0")

    # Exits
    risk_reward_ratio: Decimal = Decimal("2.5")
    stop_loss_atr_ratio: Decimal = Decimal("1")

    # Trading hours (UTC)
    start_trading_hour: int = 5
    end_trading_hour: int = 11
    no_trading_hours_limit: bool = True
    no_trade_hours: tuple[int, ...] = field(default_factory=tuple)

    @property
    def indicator_periods(self) -> tuple[int, ...]:
        """Every EMA period the run needs, base EMA included."""
        return tuple(sorted(set(self.ema_list) | {self.base_ema}))

    @property
    def uses_adx(self) -> bool:
        return self.min_adx > 0

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if any threshold is out of range."""
        if self.atr_period <= 0:
            raise ConfigurationError(f"atr_period must be positive, got {self.atr_period}")
        if self.base_ema <= 0:
            raise ConfigurationError(f"base_ema must be positive, got {self.base_ema}")
        if not self.ema_list or any(p <= 0 for p in self.ema_list):
            raise ConfigurationError(f"ema_list must hold positive periods, got {self.ema_list}")
        for name in ("max_body_pct", "min_longer_wick_pct", "max_shorter_wick_pct"):
            value = getattr(self, name)
            if not Decimal(0) <= value <= Decimal(100):
                raise ConfigurationError(f"{name} must be within 0-100, got {value}")
        if self.risk_reward_ratio <= 0:
            raise ConfigurationError(
                f"risk_reward_ratio must be positive, got {self.risk_reward_ratio}"
            )
        for name in (
            "stop_loss_atr_ratio", "min_wick_atr_ratio", "min_bar_range",
            "near_ema_threshold", "min_adx", "low_adx_risk_reward_ratio",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.uses_adx and self.adx_period <= 0:
            raise ConfigurationError(
                f"adx_period must be positive when min_adx is set, got {self.adx_period}"
            )
        if self.contract_size <= 0:
            raise ConfigurationError(f"contract_size must be positive, got {self.contract_size}")
        hours = (self.start_trading_hour, self.end_trading_hour, *self.no_trade_hours)
        if any(not 0 <= h <= 23 for h in hours):
            raise ConfigurationError(f"trading hours must be within 0-23, got {hours}")


@dataclass(frozen=True)
class AccountRisk:
    """Account-level risk settings shared by every trade of a run."""

    initial_capital: Decimal = Decimal("100000")
    leverage: Decimal = Decimal("30")
    max_loss_per_trade_pct: Decimal = Decimal("1")
    max_daily_loss_pct: Decimal = Decimal("3")

    @property
    def risk_amount(self) -> Decimal:
        """Money risked on a single trade."""
        return self.initial_capital * self.max_loss_per_trade_pct / Decimal(100)

    def validate(self) -> None:
        if self.initial_capital <= 0:
            raise ConfigurationError(
                f"initial_capital must be positive, got {self.initial_capital}"
            )
        if self.leverage <= 0:
            raise ConfigurationError(f"leverage must be positive, got {self.leverage}")
        if not Decimal(0) < self.max_loss_per_trade_pct <= Decimal(100):
            raise ConfigurationError(
                f"max_loss_per_trade_pct must be within (0, 100], got {self.max_loss_per_trade_pct}"
            )
        if not Decimal(0) <= self.max_daily_loss_pct <= Decimal(100):
            raise ConfigurationError(
                f"max_daily_loss_pct must be within 0-100, got {self.max_daily_loss_pct}"
            )


@dataclass(frozen=True)
class EntryDecision:
    """An accepted entry produced by the Pin-Bar rules."""

    direction: Direction
    entry_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    pattern_time: datetime

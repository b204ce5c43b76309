"""Backtest data models — trades, equity points, metrics and run results."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Literal, Optional

from pinforge.risk.position_sizer import calculate_profit_amount
from pinforge.strategy.models import AccountRisk, Direction, StrategyParameters

CloseReason = Literal["StopLoss", "TakeProfit", "Manual"]


@dataclass
class Position:
    """The single open position held by the engine between entry and exit."""

    direction: Direction
    entry_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    entry_time: datetime
    lot_size: Decimal


@dataclass(frozen=True)
class Trade:
    """A closed trade.  P&L figures are derived, never stored."""

    trade_id: str
    direction: Direction
    open_time: datetime
    close_time: datetime
    open_price: Decimal
    close_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    close_reason: CloseReason
    lot_size: Decimal
    contract_size: Decimal

    @property
    def stop_distance(self) -> Decimal:
        if self.direction == "long":
            return self.open_price - self.stop_loss
        return self.stop_loss - self.open_price

    @property
    def profit_loss(self) -> Decimal:
        """P&L in price points."""
        if self.direction == "long":
            return self.close_price - self.open_price
        return self.open_price - self.close_price

    @property
    def return_rate(self) -> Decimal:
        """P&L relative to the initial risk (R-multiple)."""
        if self.stop_distance == 0:
            return Decimal(0)
        return self.profit_loss / self.stop_distance

    @property
    def profit_amount(self) -> Decimal:
        """P&L in account currency."""
        return calculate_profit_amount(self.profit_loss, self.contract_size, self.lot_size)

    @property
    def is_winning(self) -> bool:
        return self.profit_loss > 0

    @property
    def holding_time(self) -> timedelta:
        return self.close_time - self.open_time


@dataclass(frozen=True)
class EquityPoint:
    """Cumulative equity after one closed trade."""

    time: datetime
    cumulative_profit: Decimal
    cumulative_return_rate: Decimal  # % of initial capital
    trade_id: Optional[str] = None


@dataclass(frozen=True)
class StreakSpan:
    """Longest run of consecutive wins or losses."""

    length: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    """Summary statistics over a whole trade ledger."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_profit: Decimal = Decimal(0)
    total_return_rate: Decimal = Decimal(0)
    net_return_pct: Decimal = Decimal(0)
    profit_factor: float = 0.0
    average_holding_time: timedelta = timedelta(0)
    max_consecutive_wins: StreakSpan = StreakSpan()
    max_consecutive_losses: StreakSpan = StreakSpan()
    max_drawdown: Decimal = Decimal(0)
    max_drawdown_pct: Decimal = Decimal(0)
    max_drawdown_start: Optional[datetime] = None
    max_drawdown_end: Optional[datetime] = None
    average_trades_per_month: float = 0.0


@dataclass(frozen=True)
class PeriodMetrics:
    """Statistics for one calendar bucket (week, month or year)."""

    period: str
    start_date: datetime
    end_date: datetime
    trade_count: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_loss: Decimal
    return_rate: Decimal
    average_holding_time: timedelta
    max_consecutive_wins: int
    max_consecutive_losses: int


@dataclass(frozen=True)
class PeriodBreakdown:
    weekly: list[PeriodMetrics] = field(default_factory=list)
    monthly: list[PeriodMetrics] = field(default_factory=list)
    yearly: list[PeriodMetrics] = field(default_factory=list)


@dataclass(frozen=True)
class BacktestResult:
    """Full output of one backtest run.  The caller owns and persists it."""

    parameters: StrategyParameters
    account: AccountRisk
    start_time: datetime
    end_time: datetime
    trades: list[Trade]
    equity_curve: list[EquityPoint]
    overall: PerformanceMetrics
    periods: PeriodBreakdown
    open_position: Optional[Position] = None

    @property
    def weekly(self) -> list[PeriodMetrics]:
        return self.periods.weekly

    @property
    def monthly(self) -> list[PeriodMetrics]:
        return self.periods.monthly

    @property
    def yearly(self) -> list[PeriodMetrics]:
        return self.periods.yearly

    def to_dict(self) -> dict:
        """JSON-ready representation; Decimals and datetimes become strings."""
        data = _jsonable(asdict(self))
        data["trades"] = [
            {
                **_jsonable(asdict(t)),
                "profit_loss": str(t.profit_loss),
                "return_rate": str(t.return_rate),
                "profit_amount": str(t.profit_amount),
            }
            for t in self.trades
        ]
        return data


def _jsonable(value):
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    return value

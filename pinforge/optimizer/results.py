"""Optimization result records, per-combination failures and ranking."""

from dataclasses import asdict, dataclass, field
from decimal import Decimal

from pinforge.backtest.models import BacktestResult
from pinforge.optimizer.space import AXES, Combination


@dataclass(frozen=True)
class OptimizationResult:
    """Compact summary of one combination's run (no trade ledger)."""

    index: int
    max_body_pct: Decimal
    min_longer_wick_pct: Decimal
    max_shorter_wick_pct: Decimal
    near_ema_threshold: Decimal
    stop_loss_atr_ratio: Decimal
    risk_reward_ratio: Decimal
    max_loss_per_trade_pct: Decimal
    total_trades: int
    winning_trades: int
    win_rate: float
    total_profit: Decimal
    return_pct: Decimal
    total_return_rate: Decimal
    profit_factor: float
    max_drawdown: Decimal
    average_trades_per_month: float

    @classmethod
    def from_backtest(cls, combination: Combination, result: BacktestResult) -> "OptimizationResult":
        m = result.overall
        return cls(
            index=combination.index,
            **combination.values(),
            total_trades=m.total_trades,
            winning_trades=m.winning_trades,
            win_rate=m.win_rate,
            total_profit=m.total_profit,
            return_pct=m.net_return_pct,
            total_return_rate=m.total_return_rate,
            profit_factor=m.profit_factor,
            max_drawdown=m.max_drawdown,
            average_trades_per_month=m.average_trades_per_month,
        )

    def to_record(self) -> dict:
        """Flat JSON-ready mapping; Decimals become strings."""
        return {k: str(v) if isinstance(v, Decimal) else v for k, v in asdict(self).items()}

    @classmethod
    def from_record(cls, record: dict) -> "OptimizationResult":
        decimal_fields = set(AXES) | {"total_profit", "return_pct", "total_return_rate", "max_drawdown"}
        kwargs = {}
        for name in cls.__dataclass_fields__:
            value = record[name]
            if name in decimal_fields:
                value = Decimal(str(value))
            elif name in ("index", "total_trades", "winning_trades"):
                value = int(value)
            else:
                value = float(value)
            kwargs[name] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class CombinationFailure:
    """A combination whose run raised; *error* is ``"<Type>: <message>"``."""

    index: int
    combination: Combination
    error: str


@dataclass
class SweepReport:
    """Everything a parameter sweep produced."""

    total: int
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    results: list[OptimizationResult] = field(default_factory=list)
    failures: list[CombinationFailure] = field(default_factory=list)
    ranked: list[OptimizationResult] = field(default_factory=list)
    checkpoint_paths: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed


def rank_results(
    results: list[OptimizationResult],
    min_trades: int = 50,
    top_n: int = 10,
) -> list[OptimizationResult]:
    """Drop results with fewer than *min_trades* trades, best return first."""
    eligible = [r for r in results if r.total_trades >= min_trades]
    eligible.sort(key=lambda r: (-r.return_pct, r.index))
    return eligible[:top_n]

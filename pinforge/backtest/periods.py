"""Calendar bucketing of a trade ledger into weekly, monthly and yearly stats.

Buckets are disjoint and keyed by each trade's close time; every bucket is
summarised on its own, never as a rolling window.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pinforge.backtest.models import PeriodMetrics, Trade

PeriodType = Literal["week", "month", "year"]


def period_key(time: datetime, period_type: PeriodType) -> str:
    """Bucket label: ``2024-W07`` (ISO week), ``2024-02`` or ``2024``."""
    if period_type == "week":
        iso_year, iso_week, _ = time.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period_type == "month":
        return f"{time.year}-{time.month:02d}"
    if period_type == "year":
        return f"{time.year}"
    raise ValueError(f"period_type must be 'week', 'month' or 'year', got '{period_type}'")


def calculate_period_metrics(
    trades: list[Trade],
    period_type: PeriodType,
) -> list[PeriodMetrics]:
    """Group *trades* by close-time period and summarise each group."""
    # Deferred to avoid a cycle: stats imports this module.
    from pinforge.backtest.stats import average_holding_time, calculate_streaks, win_rate

    groups: dict[str, list[Trade]] = {}
    for trade in trades:
        groups.setdefault(period_key(trade.close_time, period_type), []).append(trade)

    metrics: list[PeriodMetrics] = []
    for key in sorted(groups):
        group = groups[key]
        winning = sum(1 for t in group if t.is_winning)
        wins, losses = calculate_streaks(group)
        metrics.append(
            PeriodMetrics(
                period=key,
                start_date=min(t.open_time for t in group),
                end_date=max(t.close_time for t in group),
                trade_count=len(group),
                winning_trades=winning,
                losing_trades=len(group) - winning,
                win_rate=win_rate(winning, len(group)),
                profit_loss=sum((t.profit_amount for t in group), Decimal(0)),
                return_rate=sum((t.return_rate for t in group), Decimal(0)),
                average_holding_time=average_holding_time(group),
                max_consecutive_wins=wins.length,
                max_consecutive_losses=losses.length,
            )
        )
    return metrics

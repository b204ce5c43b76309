"""Backtest statistics — pure functions for trade-ledger analysis.

Every function is total: an empty ledger yields zeroed metrics, and no
ratio ever divides by zero.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from pinforge.backtest.models import (
    EquityPoint,
    PerformanceMetrics,
    PeriodBreakdown,
    StreakSpan,
    Trade,
)
from pinforge.backtest.periods import calculate_period_metrics
from pinforge.risk.drawdown import DrawdownTracker


def aggregate(
    trades: list[Trade],
    equity_curve: list[EquityPoint],
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
) -> tuple[PerformanceMetrics, PeriodBreakdown]:
    """Compute overall and period-bucketed metrics for one run."""
    overall = calculate_stats(trades, equity_curve, start_time, end_time)
    periods = PeriodBreakdown(
        weekly=calculate_period_metrics(trades, "week"),
        monthly=calculate_period_metrics(trades, "month"),
        yearly=calculate_period_metrics(trades, "year"),
    )
    return overall, periods


def calculate_stats(
    trades: list[Trade],
    equity_curve: list[EquityPoint],
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
) -> PerformanceMetrics:
    """Summary statistics from a list of closed trades and their equity curve.

    Returns:
        ``PerformanceMetrics`` — win rate in percent (0 when there are no
        trades), profit factor on money P&L (0 when nothing was lost),
        streaks and drawdown with their time spans.
    """
    if start_time is None and trades:
        start_time = trades[0].open_time
    if end_time is None and trades:
        end_time = trades[-1].close_time

    if not trades:
        return PerformanceMetrics()

    total = len(trades)
    winning = sum(1 for t in trades if t.is_winning)
    losing = total - winning

    amounts = [t.profit_amount for t in trades]
    gross_profit = sum((a for a in amounts if a > 0), Decimal(0))
    gross_loss = abs(sum((a for a in amounts if a <= 0), Decimal(0)))

    wins, losses = calculate_streaks(trades)
    dd = _drawdown(equity_curve, start_time)
    dd_pct = _drawdown_pct(equity_curve, start_time)

    return PerformanceMetrics(
        total_trades=total,
        winning_trades=winning,
        losing_trades=losing,
        win_rate=win_rate(winning, total),
        total_profit=sum(amounts, Decimal(0)),
        total_return_rate=sum((t.return_rate for t in trades), Decimal(0)),
        net_return_pct=equity_curve[-1].cumulative_return_rate if equity_curve else Decimal(0),
        profit_factor=profit_factor(gross_profit, gross_loss),
        average_holding_time=average_holding_time(trades),
        max_consecutive_wins=wins,
        max_consecutive_losses=losses,
        max_drawdown=dd.max_drawdown,
        max_drawdown_pct=dd_pct.max_drawdown,
        max_drawdown_start=dd.max_drawdown_start,
        max_drawdown_end=dd.max_drawdown_end,
        average_trades_per_month=average_trades_per_month(total, start_time, end_time),
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def win_rate(winning: int, total: int) -> float:
    """Winning share in percent; 0.0 for an empty ledger."""
    if total == 0:
        return 0.0
    return round(winning / total * 100, 4)


def profit_factor(gross_profit: Decimal, gross_loss: Decimal) -> float:
    """Gross profit ÷ gross loss; 0.0 when there is no loss to divide by."""
    if gross_loss == 0:
        return 0.0
    return round(float(gross_profit / gross_loss), 4)


def average_holding_time(trades: list[Trade]) -> timedelta:
    if not trades:
        return timedelta(0)
    return sum((t.holding_time for t in trades), timedelta(0)) / len(trades)


def months_spanned(start_time: Optional[datetime], end_time: Optional[datetime]) -> int:
    """Calendar months touched by ``[start_time, end_time]``, inclusive."""
    if start_time is None or end_time is None or end_time < start_time:
        return 0
    return (end_time.year - start_time.year) * 12 + end_time.month - start_time.month + 1


def average_trades_per_month(
    total: int,
    start_time: Optional[datetime],
    end_time: Optional[datetime],
) -> float:
    months = months_spanned(start_time, end_time)
    if months == 0:
        return 0.0
    return round(total / months, 4)


def calculate_streaks(trades: list[Trade]) -> tuple[StreakSpan, StreakSpan]:
    """Longest winning and losing streaks in one forward scan.

    Each streak records the open time of its first trade and the close
    time of its last trade.  Among equal-length streaks the earliest wins.
    """
    best_win = StreakSpan()
    best_loss = StreakSpan()
    run_length = 0
    run_winning: Optional[bool] = None
    run_start: Optional[datetime] = None

    for trade in trades:
        if trade.is_winning != run_winning:
            run_winning = trade.is_winning
            run_length = 0
            run_start = trade.open_time
        run_length += 1

        if run_winning and run_length > best_win.length:
            best_win = StreakSpan(run_length, run_start, trade.close_time)
        elif not run_winning and run_length > best_loss.length:
            best_loss = StreakSpan(run_length, run_start, trade.close_time)

    return best_win, best_loss


def _drawdown(curve: list[EquityPoint], start_time: Optional[datetime]) -> DrawdownTracker:
    tracker = DrawdownTracker(Decimal(0), start_time)
    for point in curve:
        tracker.update(point.cumulative_profit, point.time)
    return tracker


def _drawdown_pct(curve: list[EquityPoint], start_time: Optional[datetime]) -> DrawdownTracker:
    tracker = DrawdownTracker(Decimal(0), start_time)
    for point in curve:
        tracker.update(point.cumulative_return_rate, point.time)
    return tracker

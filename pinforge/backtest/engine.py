"""Backtest engine — replays historical bars through the Pin-Bar rules.

Walks the bar series once, holding at most one position at a time, and
turns it into a ledger of closed trades plus an equity curve.  No real
orders are placed.
"""

import logging
from decimal import Decimal
from typing import Optional

from pinforge.backtest.models import (
    BacktestResult,
    CloseReason,
    EquityPoint,
    Position,
    Trade,
)
from pinforge.backtest.stats import aggregate
from pinforge.config import ConfigurationError
from pinforge.risk.position_sizer import calculate_lot_size
from pinforge.strategy.indicators import compute_indicators
from pinforge.strategy.models import AccountRisk, Bar, EntryDecision, StrategyParameters
from pinforge.strategy.pin_bar import evaluate_entry

logger = logging.getLogger("pinforge.backtest")


def validate_bars(bars: list[Bar]) -> None:
    """Reject an empty series or one that is not strictly time-ascending."""
    if not bars:
        raise ConfigurationError("Bar series is empty")
    for i in range(1, len(bars)):
        if bars[i].time <= bars[i - 1].time:
            raise ConfigurationError(
                f"Bar series is not strictly ascending at index {i}: "
                f"{bars[i - 1].time.isoformat()} -> {bars[i].time.isoformat()}"
            )


class BacktestEngine:
    """Simulates the Pin-Bar strategy on historical bar data.

    Args:
        params: Strategy thresholds for this run.
        account: Account risk settings (capital, risk per trade).
    """

    def __init__(self, params: StrategyParameters, account: AccountRisk) -> None:
        params.validate()
        account.validate()
        self._params = params
        self._account = account

    # ── Public API ───────────────────────────────────────────────────────

    def run(self, bars: list[Bar]) -> BacktestResult:
        """Execute a full backtest over *bars*.

        A position still open after the last bar is left unrealised: it is
        returned as ``open_position`` and excluded from trades and metrics.

        Raises:
            ConfigurationError: If *bars* is empty or unsorted.
        """
        validate_bars(bars)
        params = self._params

        indicators = compute_indicators(
            bars, params.atr_period, params.indicator_periods,
            adx_period=params.adx_period if params.uses_adx else 0,
        )

        position: Optional[Position] = None
        trades: list[Trade] = []
        equity_curve: list[EquityPoint] = []
        cumulative = Decimal(0)

        for i in range(1, len(bars)):
            current = bars[i]
            previous = bars[i - 1]

            # 1 — Check the open position for an SL / TP exit
            if position is not None:
                exit_ = self._check_exit(position, current)
                if exit_ is not None:
                    close_price, reason = exit_
                    trade = self._close(position, current, close_price, reason, len(trades) + 1)
                    trades.append(trade)
                    cumulative += trade.profit_amount
                    equity_curve.append(self._equity_point(trade, cumulative))
                    position = None
                    logger.debug(
                        "Closed %s %s at %s (%s), P&L %s",
                        trade.trade_id, trade.direction, trade.close_price,
                        reason, trade.profit_amount,
                    )

            # 2 — Flat: look for a new entry
            if position is not None:
                continue
            decision = evaluate_entry(current, previous, indicators, i, params, False)
            if decision is None:
                continue
            position = self._open(decision, current)
            logger.debug(
                "Opened %s at %s (SL %s, TP %s)",
                decision.direction, decision.entry_price,
                decision.stop_loss, decision.take_profit,
            )

        overall, periods = aggregate(trades, equity_curve, bars[0].time, bars[-1].time)

        logger.debug(
            "Backtest %s: %d bars, %d trades, win rate %.1f%%, P&L %s",
            params.symbol, len(bars), overall.total_trades,
            overall.win_rate, overall.total_profit,
        )

        return BacktestResult(
            parameters=params,
            account=self._account,
            start_time=bars[0].time,
            end_time=bars[-1].time,
            trades=trades,
            equity_curve=equity_curve,
            overall=overall,
            periods=periods,
            open_position=position,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _check_exit(
        position: Position, bar: Bar,
    ) -> Optional[tuple[Decimal, CloseReason]]:
        """Check if *bar* touches the stop or the target.

        Returns ``(close_price, reason)`` or ``None``.  When both levels
        are touched within one bar the stop-loss wins.
        """
        if position.direction == "long":
            sl_hit = bar.low <= position.stop_loss
            tp_hit = bar.high >= position.take_profit
        else:
            sl_hit = bar.high >= position.stop_loss
            tp_hit = bar.low <= position.take_profit

        if sl_hit:
            return position.stop_loss, "StopLoss"
        if tp_hit:
            return position.take_profit, "TakeProfit"
        return None

    def _open(self, decision: EntryDecision, bar: Bar) -> Position:
        stop_distance = abs(decision.entry_price - decision.stop_loss)
        lot_size = calculate_lot_size(
            self._account.risk_amount, stop_distance, self._params.contract_size,
        )
        return Position(
            direction=decision.direction,
            entry_price=decision.entry_price,
            stop_loss=decision.stop_loss,
            take_profit=decision.take_profit,
            entry_time=bar.time,
            lot_size=lot_size,
        )

    def _close(
        self,
        position: Position,
        bar: Bar,
        close_price: Decimal,
        reason: CloseReason,
        sequence: int,
    ) -> Trade:
        return Trade(
            trade_id=f"T{sequence:05d}",
            direction=position.direction,
            open_time=position.entry_time,
            close_time=bar.time,
            open_price=position.entry_price,
            close_price=close_price,
            stop_loss=position.stop_loss,
            take_profit=position.take_profit,
            close_reason=reason,
            lot_size=position.lot_size,
            contract_size=self._params.contract_size,
        )

    def _equity_point(self, trade: Trade, cumulative: Decimal) -> EquityPoint:
        return EquityPoint(
            time=trade.close_time,
            cumulative_profit=cumulative,
            cumulative_return_rate=cumulative / self._account.initial_capital * Decimal(100),
            trade_id=trade.trade_id,
        )


def run_backtest(
    bars: list[Bar],
    params: StrategyParameters,
    account: AccountRisk,
) -> BacktestResult:
    """Run the full pipeline: indicators → simulation → metrics."""
    return BacktestEngine(params, account).run(bars)

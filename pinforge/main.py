"""PinForge — command-line entry point.

Usage:
    python -m pinforge.main backtest --profile profile.json --output result.json
    python -m pinforge.main optimize --space space.json --workers auto
"""

import argparse
import json
import logging
import signal
import sys
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from pinforge.config import (
    ConfigurationError,
    load_config,
    load_parameter_space,
    load_profile,
)

logger = logging.getLogger("pinforge")


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got '{value}'") from None


def _parse_end_date(value: str) -> datetime:
    # The last instant of the named day, so its bars are kept.
    return _parse_date(value) + timedelta(days=1) - timedelta(microseconds=1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PinForge Pin-Bar backtester and optimizer")
    parser.add_argument("--env", help="Path to a .env file")
    parser.add_argument("--bars", help="Bar file (default: first match in the data dir)")
    parser.add_argument("--start", type=_parse_date, help="First bar date (YYYY-MM-DD)")
    parser.add_argument("--end", type=_parse_end_date, help="Last bar date, inclusive (YYYY-MM-DD)")
    parser.add_argument("--profile", help="JSON strategy/account profile")

    sub = parser.add_subparsers(dest="command", required=True)

    bt = sub.add_parser("backtest", help="Run a single backtest")
    bt.add_argument("--output", help="Write the full result as JSON to this path")

    opt = sub.add_parser("optimize", help="Sweep a parameter space")
    opt.add_argument("--space", required=True, help="JSON parameter space")
    opt.add_argument("--workers", help="Pool size or 'auto' (overrides PINFORGE_WORKERS)")
    opt.add_argument("--resume", help="Checkpoint file whose combinations are skipped")
    return parser


def _load_bars(config, args):
    from pinforge.data.bar_loader import find_bar_file, load_bars

    path = Path(args.bars) if args.bars else find_bar_file(
        config.data_dir, config.symbol, config.csv_filter,
    )
    return load_bars(path, args.start, args.end)


def _run_backtest(config, args) -> None:
    from pinforge.backtest.engine import run_backtest
    from pinforge.backtest.time_slots import best_slots, worst_slots

    params, account = load_profile(args.profile)
    bars = _load_bars(config, args)
    result = run_backtest(bars, params, account)
    m = result.overall

    logger.info(
        "Backtest complete: %d trades, win rate %.2f%%, P&L %s (%.2f%%), "
        "profit factor %.2f, max drawdown %s",
        m.total_trades, m.win_rate, m.total_profit, m.net_return_pct,
        m.profit_factor, m.max_drawdown,
    )
    logger.info(
        "Streaks: %d wins, %d losses; %.2f trades/month",
        m.max_consecutive_wins.length, m.max_consecutive_losses.length,
        m.average_trades_per_month,
    )
    if result.open_position is not None:
        logger.info("Position still open at the last bar (not counted)")
    for slot in best_slots(result.trades, 3):
        logger.info("Best hour %s: %d trades, P&L %s", slot.label, slot.trade_count, slot.total_profit_loss)
    for slot in worst_slots(result.trades, 3):
        logger.info("Worst hour %s: %d trades, P&L %s", slot.label, slot.trade_count, slot.total_profit_loss)

    if args.output:
        Path(args.output).write_text(json.dumps(result.to_dict(), indent=2, default=str))
        logger.info("Result written → %s", args.output)


def _run_optimize(config, args) -> int:
    from pinforge.optimizer.checkpoint import load_checkpoint
    from pinforge.optimizer.sweep import ParameterOptimizer

    params, account = load_profile(args.profile)
    space = load_parameter_space(args.space)
    bars = _load_bars(config, args)
    completed = load_checkpoint(args.resume) if args.resume else []

    cancel_event = threading.Event()

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — finishing in-flight combinations.")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, handle_shutdown)

    optimizer = ParameterOptimizer(
        base_params=params,
        base_account=account,
        results_dir=config.results_dir,
        workers=args.workers or config.workers,
        checkpoint_interval=config.checkpoint_interval,
        min_trades=config.min_trades,
        top_n=config.top_n,
    )
    try:
        report = optimizer.optimize(space, bars, cancel_event=cancel_event, completed=completed)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    logger.info(
        "Top %d (min %d trades) of %d succeeded / %d failed:",
        len(report.ranked), config.min_trades, report.succeeded, report.failed,
    )
    for rank, r in enumerate(report.ranked, start=1):
        logger.info(
            "#%d [%d] return %s%%, win rate %.2f%%, trades %d, max DD %s | "
            "body=%s wick=%s short=%s nearEma=%s sl=%s rr=%s risk=%s",
            rank, r.index, r.return_pct, r.win_rate, r.total_trades, r.max_drawdown,
            r.max_body_pct, r.min_longer_wick_pct, r.max_shorter_wick_pct,
            r.near_ema_threshold, r.stop_loss_atr_ratio, r.risk_reward_ratio,
            r.max_loss_per_trade_pct,
        )
    return 130 if report.cancelled else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Parse CLI arguments and dispatch to the selected command."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.env)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Configuration error: %s", exc)
        return 2

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        if args.command == "backtest":
            _run_backtest(config, args)
            return 0
        return _run_optimize(config, args)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())

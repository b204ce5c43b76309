"""Parameter sweep — runs the backtest pipeline over every combination.

Each combination is a pure function of ``(bars, combination)``, so runs are
spread over a bounded process pool.  The coordinating thread is the single
consumer of finished runs: it records outcomes, hands snapshots to the
checkpoint writer and honours cooperative cancellation between
combinations.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from typing import Callable, Iterable, Optional

from pinforge.backtest.engine import run_backtest, validate_bars
from pinforge.config import resolve_workers
from pinforge.optimizer.checkpoint import CheckpointWriter
from pinforge.optimizer.results import (
    CombinationFailure,
    OptimizationResult,
    SweepReport,
    rank_results,
)
from pinforge.optimizer.space import Combination, ParameterSpace
from pinforge.strategy.models import AccountRisk, Bar, StrategyParameters

logger = logging.getLogger("pinforge.optimizer")

PROGRESS_EVERY = 100

Runner = Callable[[list[Bar], Combination, StrategyParameters, AccountRisk], OptimizationResult]


def run_combination(
    bars: list[Bar],
    combination: Combination,
    base_params: StrategyParameters,
    base_account: AccountRisk,
) -> OptimizationResult:
    """Backtest one combination and keep only its summary."""
    params, account = combination.apply(base_params, base_account)
    result = run_backtest(bars, params, account)
    return OptimizationResult.from_backtest(combination, result)


# ── Worker-process state ─────────────────────────────────────────────────
# Set once per worker by the pool initializer so bars are not re-sent
# with every task.

_worker_bars: list[Bar] = []
_worker_params: Optional[StrategyParameters] = None
_worker_account: Optional[AccountRisk] = None


def _init_worker(bars: list[Bar], params: StrategyParameters, account: AccountRisk) -> None:
    global _worker_bars, _worker_params, _worker_account
    _worker_bars = bars
    _worker_params = params
    _worker_account = account


def _run_in_worker(combination: Combination) -> OptimizationResult:
    return run_combination(_worker_bars, combination, _worker_params, _worker_account)


class ParameterOptimizer:
    """Sweeps a ``ParameterSpace`` and ranks the results.

    Args:
        base_params: Strategy settings shared by every combination.
        base_account: Account settings shared by every combination.
        results_dir: Where checkpoint and final JSON files go; ``None``
            disables checkpointing.
        workers: Pool size, or ``"auto"`` for one per CPU.  ``1`` runs
            in-process.
        checkpoint_interval: Finished combinations between checkpoints.
        min_trades: Trade-count floor for ranking.
        top_n: Number of ranked results to report.
        runner: Pipeline for one combination (in-process runs only).
    """

    def __init__(
        self,
        base_params: Optional[StrategyParameters] = None,
        base_account: Optional[AccountRisk] = None,
        results_dir: Optional[str] = "results",
        workers: int | str = 1,
        checkpoint_interval: int = 500,
        min_trades: int = 50,
        top_n: int = 10,
        runner: Runner = run_combination,
    ) -> None:
        self._params = base_params or StrategyParameters()
        self._account = base_account or AccountRisk()
        self._results_dir = results_dir
        self._workers = resolve_workers(workers)
        self._checkpoint_interval = max(1, checkpoint_interval)
        self._min_trades = min_trades
        self._top_n = top_n
        self._runner = runner

    # ── Public API ───────────────────────────────────────────────────────

    def optimize(
        self,
        space: ParameterSpace,
        bars: list[Bar],
        cancel_event: Optional[threading.Event] = None,
        completed: Iterable[OptimizationResult] = (),
    ) -> SweepReport:
        """Run every combination of *space* over *bars*.

        Args:
            space: The axes to sweep.
            bars: Shared, read-only bar series.
            cancel_event: When set, no further combinations start; the
                ones in flight finish and a final checkpoint is written.
            completed: Results from an earlier sweep of the same space;
                their combinations are skipped and the results kept.

        Raises:
            ConfigurationError: If *bars* or *space* is invalid.  Errors
                inside a single combination never propagate.
        """
        validate_bars(bars)
        self._params.validate()
        self._account.validate()
        space.validate()
        cancel_event = cancel_event or threading.Event()

        report = SweepReport(total=space.total_combinations())
        done = {r.index: r for r in completed if 0 <= r.index < report.total}
        report.results.extend(done.values())
        report.skipped = len(done)
        pending = (c for c in space.combinations() if c.index not in done)

        logger.info(
            "Sweeping %d combination(s) over %d bars with %d worker(s)%s",
            report.total, len(bars), self._workers,
            f", resuming {len(done)} done" if done else "",
        )

        writer = CheckpointWriter(self._results_dir) if self._results_dir else None
        started = time.monotonic()
        try:
            if self._workers == 1:
                self._run_sequential(pending, bars, report, writer, cancel_event, started)
            else:
                self._run_pool(pending, bars, report, writer, cancel_event, started)
        finally:
            report.results.sort(key=lambda r: r.index)
            report.failures.sort(key=lambda o: o.index)
            if writer is not None:
                writer.submit(report.results, label="final")
                report.checkpoint_paths = writer.close()

        report.ranked = rank_results(report.results, self._min_trades, self._top_n)
        logger.info(
            "Sweep %s in %.1fs: %d succeeded, %d failed, %d skipped of %d",
            "cancelled" if report.cancelled else "complete",
            time.monotonic() - started,
            report.succeeded, report.failed, report.skipped, report.total,
        )
        return report

    # ── Execution strategies ─────────────────────────────────────────────

    def _run_sequential(self, pending, bars, report, writer, cancel_event, started) -> None:
        for combination in pending:
            if cancel_event.is_set():
                report.cancelled = True
                break
            try:
                result = self._runner(bars, combination, self._params, self._account)
            except Exception as exc:
                self._record_failure(report, combination, exc)
            else:
                self._record_success(report, combination, result)
            self._after_each(report, writer, started)

    def _run_pool(self, pending, bars, report, writer, cancel_event, started) -> None:
        max_in_flight = self._workers * 2
        in_flight: dict[Future, Combination] = {}
        with ProcessPoolExecutor(
            max_workers=self._workers,
            initializer=_init_worker,
            initargs=(bars, self._params, self._account),
        ) as executor:
            exhausted = False
            while True:
                while not exhausted and len(in_flight) < max_in_flight:
                    if cancel_event.is_set():
                        report.cancelled = True
                        exhausted = True
                        break
                    combination = next(pending, None)
                    if combination is None:
                        exhausted = True
                        break
                    in_flight[executor.submit(_run_in_worker, combination)] = combination

                if not in_flight:
                    break

                finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in finished:
                    combination = in_flight.pop(future)
                    try:
                        result = future.result()
                    except Exception as exc:
                        self._record_failure(report, combination, exc)
                    else:
                        self._record_success(report, combination, result)
                    self._after_each(report, writer, started)

    # ── Bookkeeping ──────────────────────────────────────────────────────

    @staticmethod
    def _record_success(report: SweepReport, combination: Combination, result: OptimizationResult) -> None:
        report.succeeded += 1
        report.results.append(result)

    @staticmethod
    def _record_failure(report: SweepReport, combination: Combination, exc: Exception) -> None:
        report.failed += 1
        report.failures.append(
            CombinationFailure(
                index=combination.index,
                combination=combination,
                error=f"{type(exc).__name__}: {exc}",
            )
        )
        logger.warning("Combination %s failed: %s", combination.describe(), exc)

    def _after_each(self, report: SweepReport, writer: Optional[CheckpointWriter], started: float) -> None:
        processed = report.processed
        if processed % PROGRESS_EVERY == 0:
            elapsed = time.monotonic() - started
            remaining = report.total - report.skipped - processed
            eta = elapsed / processed * remaining if processed else 0.0
            logger.info(
                "Progress %d/%d (%.1f%%), %d failed, ~%.1f min remaining",
                processed + report.skipped, report.total,
                (processed + report.skipped) * 100.0 / report.total,
                report.failed, eta / 60,
            )
        if writer is not None and processed % self._checkpoint_interval == 0:
            writer.submit(sorted(report.results, key=lambda r: r.index))


def optimize(
    space: ParameterSpace,
    bars: list[Bar],
    base_params: Optional[StrategyParameters] = None,
    base_account: Optional[AccountRisk] = None,
    **kwargs,
) -> SweepReport:
    """Shortcut for ``ParameterOptimizer(...).optimize(space, bars)``."""
    cancel_event = kwargs.pop("cancel_event", None)
    completed = kwargs.pop("completed", ())
    return ParameterOptimizer(base_params, base_account, **kwargs).optimize(
        space, bars, cancel_event=cancel_event, completed=completed,
    )

"""Drawdown tracking over an equity curve — pure math, no I/O.

Tracks the running peak of cumulative equity and the largest
peak-to-trough decline seen so far, together with when it started (the
peak) and when it bottomed out (the trough).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional


class DrawdownTracker:
    """Tracks equity peaks and the maximum drawdown with its time span.

    Args:
        initial_equity: Equity before the first update (0 for a
            cumulative-profit curve).
        start_time: When *initial_equity* was observed, if known.
    """

    def __init__(
        self,
        initial_equity: Decimal = Decimal(0),
        start_time: Optional[datetime] = None,
    ) -> None:
        self._peak_equity: Decimal = initial_equity
        self._peak_time: Optional[datetime] = start_time
        self._current_equity: Decimal = initial_equity
        self._max_drawdown: Decimal = Decimal(0)
        self._max_drawdown_start: Optional[datetime] = None
        self._max_drawdown_end: Optional[datetime] = None

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: Decimal, time: datetime) -> None:
        """Record the equity value observed at *time*.

        If *equity* exceeds the current peak, the peak is raised.
        """
        if self._peak_time is None:
            self._peak_time = time
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
            self._peak_time = time
            return

        drawdown = self._peak_equity - equity
        if drawdown > self._max_drawdown:
            self._max_drawdown = drawdown
            self._max_drawdown_start = self._peak_time
            self._max_drawdown_end = time

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> Decimal:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> Decimal:
        return self._current_equity

    @property
    def current_drawdown(self) -> Decimal:
        return self._peak_equity - self._current_equity

    @property
    def max_drawdown(self) -> Decimal:
        """Largest peak-to-trough decline, as a non-negative number."""
        return self._max_drawdown

    @property
    def max_drawdown_start(self) -> Optional[datetime]:
        return self._max_drawdown_start

    @property
    def max_drawdown_end(self) -> Optional[datetime]:
        return self._max_drawdown_end

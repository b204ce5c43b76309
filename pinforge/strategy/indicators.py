"""Technical indicators — ATR, EMA and ADX series. Pure functions, no I/O.

Every series is aligned with the input bars by index.  A value of
``Decimal(0)`` is the "not ready" sentinel: it marks bars before the
indicator has enough history, never a real price.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from pinforge.config import ConfigurationError
from pinforge.strategy.models import Bar

NOT_READY = Decimal(0)


@dataclass(frozen=True)
class IndicatorSet:
    """Per-bar indicator values computed once before a simulation."""

    atr: list[Decimal]
    ema: dict[int, list[Decimal]] = field(default_factory=dict)
    adx: list[Decimal] = field(default_factory=list)

    def atr_at(self, index: int) -> Decimal:
        return self.atr[index]

    def adx_at(self, index: int) -> Decimal:
        """ADX at bar *index*; the sentinel if it was not computed."""
        if not self.adx:
            return NOT_READY
        return self.adx[index]

    def ema_at(self, index: int, period: int) -> Decimal:
        """EMA(*period*) at bar *index*; the sentinel if it was never computed."""
        series = self.ema.get(period)
        if series is None:
            return NOT_READY
        return series[index]


def calculate_true_ranges(bars: list[Bar]) -> list[Decimal]:
    """True range per bar.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    The first bar has no previous close, so its TR is its own range.
    """
    true_ranges: list[Decimal] = []
    for i, bar in enumerate(bars):
        if i == 0:
            true_ranges.append(bar.high - bar.low)
            continue
        prev_close = bars[i - 1].close
        true_ranges.append(
            max(
                bar.high - bar.low,
                abs(bar.high - prev_close),
                abs(bar.low - prev_close),
            )
        )
    return true_ranges


def calculate_atr_series(bars: list[Bar], period: int = 14) -> list[Decimal]:
    """Wilder-smoothed Average True Range series.

    The seed at index ``period - 1`` is the simple average of the first
    *period* true ranges; afterwards::

        atr[i] = (atr[i-1] × (period - 1) + tr[i]) / period

    Entries before the seed are ``NOT_READY``.
    """
    if period <= 0:
        raise ConfigurationError(f"ATR period must be positive, got {period}")

    atr: list[Decimal] = [NOT_READY] * len(bars)
    if len(bars) < period:
        return atr

    true_ranges = calculate_true_ranges(bars)
    atr[period - 1] = sum(true_ranges[:period], Decimal(0)) / period

    for i in range(period, len(bars)):
        atr[i] = (atr[i - 1] * (period - 1) + true_ranges[i]) / period

    return atr


def calculate_ema_series(bars: list[Bar], period: int) -> list[Decimal]:
    """Exponential Moving Average series of closes.

    Seeded with the SMA of the first *period* closes at index
    ``period - 1``, then::

        ema[i] = (close[i] - ema[i-1]) × k + ema[i-1],   k = 2 / (period + 1)

    Entries before the seed are ``NOT_READY``.
    """
    if period <= 0:
        raise ConfigurationError(f"EMA period must be positive, got {period}")

    ema: list[Decimal] = [NOT_READY] * len(bars)
    if len(bars) < period:
        return ema

    k = Decimal(2) / (period + 1)
    closes = [b.close for b in bars]
    ema[period - 1] = sum(closes[:period], Decimal(0)) / period

    for i in range(period, len(closes)):
        ema[i] = (closes[i] - ema[i - 1]) * k + ema[i - 1]

    return ema


def calculate_adx_series(bars: list[Bar], period: int = 14) -> list[Decimal]:
    """Wilder's Average Directional Index series (0-100).

    Directional movement per bar::

        +DM = up   if up > down and up > 0 else 0,     up   = high - prev_high
        -DM = down if down > up and down > 0 else 0,   down = prev_low - low

    TR, +DM and -DM are Wilder-summed over *period* bars starting at
    index 1 (first sum at index ``period``), giving::

        +DI = 100 × sum(+DM) / sum(TR),   -DI likewise
        DX  = 100 × |+DI - -DI| / (+DI + -DI)

    The ADX seed at index ``2 × period - 1`` is the mean of the first
    *period* DX values, then ``adx[i] = (adx[i-1] × (period - 1) + dx[i]) / period``.
    Entries before the seed are ``NOT_READY``.
    """
    if period <= 0:
        raise ConfigurationError(f"ADX period must be positive, got {period}")

    adx: list[Decimal] = [NOT_READY] * len(bars)
    seed_index = 2 * period - 1
    if len(bars) <= seed_index:
        return adx

    true_ranges = calculate_true_ranges(bars)
    hundred = Decimal(100)
    sum_tr = sum_plus = sum_minus = Decimal(0)
    dx_values: list[Decimal] = []

    for i in range(1, len(bars)):
        up = bars[i].high - bars[i - 1].high
        down = bars[i - 1].low - bars[i].low
        plus_dm = up if up > down and up > 0 else Decimal(0)
        minus_dm = down if down > up and down > 0 else Decimal(0)

        if i <= period:
            sum_tr += true_ranges[i]
            sum_plus += plus_dm
            sum_minus += minus_dm
            if i < period:
                continue
        else:
            sum_tr = sum_tr - sum_tr / period + true_ranges[i]
            sum_plus = sum_plus - sum_plus / period + plus_dm
            sum_minus = sum_minus - sum_minus / period + minus_dm

        dx = Decimal(0)
        if sum_tr > 0:
            plus_di = hundred * sum_plus / sum_tr
            minus_di = hundred * sum_minus / sum_tr
            if plus_di + minus_di > 0:
                dx = hundred * abs(plus_di - minus_di) / (plus_di + minus_di)

        if i <= seed_index:
            dx_values.append(dx)
            if i == seed_index:
                adx[i] = sum(dx_values, Decimal(0)) / period
        else:
            adx[i] = (adx[i - 1] * (period - 1) + dx) / period

    return adx


def compute_indicators(
    bars: list[Bar],
    atr_period: int,
    ema_periods: Iterable[int],
    adx_period: int = 0,
) -> IndicatorSet:
    """Compute the ATR, one EMA per distinct period and, if *adx_period* > 0, the ADX."""
    return IndicatorSet(
        atr=calculate_atr_series(bars, atr_period),
        ema={p: calculate_ema_series(bars, p) for p in sorted(set(ema_periods))},
        adx=calculate_adx_series(bars, adx_period) if adx_period > 0 else [],
    )

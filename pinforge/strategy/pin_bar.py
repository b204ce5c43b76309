"""Pin-Bar entry evaluation — pure functions, no I/O.

Given the current bar (breakout confirmation) and the previous bar (the
pin-bar candidate) plus precomputed indicators, decides whether a long or
short trade may be opened and where its stop and target sit.

Every filter is a strict AND condition:

1. no open position,
2. the current bar's UTC hour is tradable,
3. the previous bar is a pin bar in the setup direction,
4. the previous close is on the trend side of the base EMA,
5. the previous bar rejected one of the configured EMAs,
6. the current close breaks the previous bar's extreme,
7. with ``min_adx`` set and no low-ADX R:R, the previous bar's ADX
   reaches ``min_adx``.

With a low-ADX R:R configured, rule 7 instead picks the target multiple:
the smaller ratio applies while ADX is below ``min_adx``.

An indicator that is not ready yet (the zero sentinel) never passes a filter.
"""

from decimal import Decimal
from typing import Optional

from pinforge.risk.sl_tp import calculate_stop_loss, calculate_take_profit
from pinforge.strategy.indicators import NOT_READY, IndicatorSet
from pinforge.strategy.models import Bar, Direction, EntryDecision, StrategyParameters
from pinforge.strategy.session_filter import is_valid_trading_hour

_HUNDRED = Decimal(100)


def is_pin_bar(
    bar: Bar,
    bullish: bool,
    atr: Decimal,
    params: StrategyParameters,
) -> bool:
    """Check the candle shape of a pin-bar candidate.

    The "longer" wick is the lower one for a bullish setup and the upper
    one for a bearish setup.  Percentages are relative to the bar range.
    """
    total = bar.total_range
    if total <= 0 or total < params.min_bar_range:
        return False

    longer_wick = bar.lower_wick if bullish else bar.upper_wick
    shorter_wick = bar.upper_wick if bullish else bar.lower_wick

    if atr > 0 and longer_wick < params.min_wick_atr_ratio * atr:
        return False
    if bar.body_size / total * _HUNDRED > params.max_body_pct:
        return False
    if longer_wick / total * _HUNDRED < params.min_longer_wick_pct:
        return False
    if shorter_wick / total * _HUNDRED > params.max_shorter_wick_pct:
        return False

    if params.require_direction_match:
        if bullish and bar.is_bearish:
            return False
        if not bullish and bar.is_bullish:
            return False

    return True


def near_any_ema(
    bar: Bar,
    bullish: bool,
    indicators: IndicatorSet,
    index: int,
    params: StrategyParameters,
) -> bool:
    """True if *bar* touched or pierced one of ``params.ema_list``.

    Long: the body stays above the EMA and the low is within the threshold
    of it (or below it).  Short mirrors this with the high.
    """
    threshold = params.near_ema_threshold
    for period in params.ema_list:
        ema = indicators.ema_at(index, period)
        if ema == NOT_READY:
            continue
        if bullish:
            body_bottom = min(bar.open, bar.close)
            if body_bottom > ema and (abs(bar.low - ema) <= threshold or bar.low < ema):
                return True
        else:
            body_top = max(bar.open, bar.close)
            if body_top < ema and (abs(bar.high - ema) <= threshold or bar.high > ema):
                return True
    return False


def passes_adx_filter(adx: Decimal, params: StrategyParameters) -> bool:
    """False only when the ADX rule is a hard filter and *adx* is below it."""
    if not params.uses_adx or params.low_adx_risk_reward_ratio > 0:
        return True
    return adx >= params.min_adx


def select_risk_reward_ratio(adx: Decimal, params: StrategyParameters) -> Decimal:
    if params.uses_adx and params.low_adx_risk_reward_ratio > 0 and adx < params.min_adx:
        return params.low_adx_risk_reward_ratio
    return params.risk_reward_ratio


def _build_decision(
    direction: Direction,
    current: Bar,
    previous: Bar,
    atr: Decimal,
    adx: Decimal,
    params: StrategyParameters,
) -> EntryDecision:
    entry = current.close
    stop = calculate_stop_loss(previous, direction, atr, params.stop_loss_atr_ratio)
    target = calculate_take_profit(entry, stop, direction, select_risk_reward_ratio(adx, params))
    return EntryDecision(
        direction=direction,
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        pattern_time=previous.time,
    )


def evaluate_long(
    current: Bar,
    previous: Bar,
    indicators: IndicatorSet,
    index: int,
    params: StrategyParameters,
    has_open_position: bool = False,
) -> Optional[EntryDecision]:
    """Return a long ``EntryDecision`` or ``None``.

    *index* is the position of *current* in the bar series; the previous
    bar's indicator values are read at ``index - 1``.
    """
    if has_open_position:
        return None
    if not is_valid_trading_hour(current.utc_hour, params):
        return None

    prev_index = index - 1
    base_ema = indicators.ema_at(prev_index, params.base_ema)
    if base_ema == NOT_READY or previous.close <= base_ema:
        return None

    atr = indicators.atr_at(prev_index)
    if not is_pin_bar(previous, True, atr, params):
        return None
    if not near_any_ema(previous, True, indicators, prev_index, params):
        return None
    if current.close <= previous.high:
        return None

    adx = indicators.adx_at(prev_index)
    if not passes_adx_filter(adx, params):
        return None

    return _build_decision("long", current, previous, atr, adx, params)


def evaluate_short(
    current: Bar,
    previous: Bar,
    indicators: IndicatorSet,
    index: int,
    params: StrategyParameters,
    has_open_position: bool = False,
) -> Optional[EntryDecision]:
    """Return a short ``EntryDecision`` or ``None``."""
    if has_open_position:
        return None
    if not is_valid_trading_hour(current.utc_hour, params):
        return None

    prev_index = index - 1
    base_ema = indicators.ema_at(prev_index, params.base_ema)
    if base_ema == NOT_READY or previous.close >= base_ema:
        return None

    atr = indicators.atr_at(prev_index)
    if not is_pin_bar(previous, False, atr, params):
        return None
    if not near_any_ema(previous, False, indicators, prev_index, params):
        return None
    if current.close >= previous.low:
        return None

    adx = indicators.adx_at(prev_index)
    if not passes_adx_filter(adx, params):
        return None

    return _build_decision("short", current, previous, atr, adx, params)


def evaluate_entry(
    current: Bar,
    previous: Bar,
    indicators: IndicatorSet,
    index: int,
    params: StrategyParameters,
    has_open_position: bool = False,
) -> Optional[EntryDecision]:
    """Evaluate a long setup first, then a short one."""
    decision = evaluate_long(current, previous, indicators, index, params, has_open_position)
    if decision is not None:
        return decision
    return evaluate_short(current, previous, indicators, index, params, has_open_position)

"""Session filter — pure function, checks if a UTC hour may open trades."""

from pinforge.strategy.models import StrategyParameters


def is_in_session(utc_hour: int, session_start: int = 5, session_end: int = 11) -> bool:
    """Return True if *utc_hour* lies in ``[session_start, session_end]``.

    Both bounds are inclusive.
    """
    return session_start <= utc_hour <= session_end


def is_valid_trading_hour(utc_hour: int, params: StrategyParameters) -> bool:
    """Apply the explicit exclusion set, then the optional hour window."""
    if utc_hour in params.no_trade_hours:
        return False
    if params.no_trading_hours_limit:
        return True
    return is_in_session(utc_hour, params.start_trading_hour, params.end_trading_hour)

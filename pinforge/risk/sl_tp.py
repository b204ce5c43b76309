"""Stop-loss and take-profit calculation — pure math, no I/O.

The stop sits beyond the pin bar's extreme, padded by a multiple of ATR.
The target is a fixed risk-reward multiple of the stop distance.
"""

from decimal import Decimal

from pinforge.strategy.models import Bar, Direction


def calculate_stop_loss(
    pin_bar: Bar,
    direction: Direction,
    atr: Decimal,
    atr_ratio: Decimal,
) -> Decimal:
    """Calculate the stop-loss price.

    - **Long**:  SL = pin_bar.low  − (atr_ratio × ATR)
    - **Short**: SL = pin_bar.high + (atr_ratio × ATR)

    Args:
        pin_bar: The pattern bar that triggered the setup.
        direction: ``"long"`` or ``"short"``.
        atr: ATR at the pattern bar (the sentinel 0 means no padding).
        atr_ratio: Stop padding as a multiple of ATR.

    Raises:
        ValueError: If *direction* is not ``"long"`` or ``"short"``.
    """
    offset = atr_ratio * atr
    if direction == "long":
        return pin_bar.low - offset
    if direction == "short":
        return pin_bar.high + offset
    raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")


def calculate_take_profit(
    entry_price: Decimal,
    stop_loss: Decimal,
    direction: Direction,
    rr_ratio: Decimal,
) -> Decimal:
    """Calculate the take-profit price.

    TP = entry ± |entry − stop| × *rr_ratio*, on the profit side of entry.

    Raises:
        ValueError: If *direction* is not ``"long"`` or ``"short"``.
    """
    reward = abs(entry_price - stop_loss) * rr_ratio
    if direction == "long":
        return entry_price + reward
    if direction == "short":
        return entry_price - reward
    raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")

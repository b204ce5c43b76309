"""Position sizing — pure math, no I/O.

Sizes every trade so that hitting the stop loses a fixed share of the
initial capital.
"""

from decimal import Decimal

MIN_LOT = Decimal("0.01")


def calculate_lot_size(
    risk_amount: Decimal,
    stop_distance: Decimal,
    contract_size: Decimal,
) -> Decimal:
    """Calculate position size in lots.

    Formula::

        lots = risk_amount / (stop_distance × contract_size)

    Args:
        risk_amount: Money lost if the stop is hit (e.g. 1 % of capital).
        stop_distance: |entry − stop| in price units.
        contract_size: Units of the instrument per lot (e.g. 100 oz).

    Returns:
        Lot size; ``MIN_LOT`` when the stop distance is not positive.

    Raises:
        ValueError: If *risk_amount* or *contract_size* is non-positive.
    """
    if risk_amount <= 0:
        raise ValueError(f"risk_amount must be positive, got {risk_amount}")
    if contract_size <= 0:
        raise ValueError(f"contract_size must be positive, got {contract_size}")
    if stop_distance <= 0:
        return MIN_LOT
    return risk_amount / (stop_distance * contract_size)


def calculate_profit_amount(
    price_diff: Decimal,
    contract_size: Decimal,
    lot_size: Decimal,
) -> Decimal:
    """Money P&L for a signed price move, rounded to 8 decimal places."""
    return round(price_diff * contract_size * lot_size, 8)

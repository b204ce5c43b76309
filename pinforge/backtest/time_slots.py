"""Hour-of-day breakdown of a trade ledger."""

from dataclasses import dataclass
from decimal import Decimal

from pinforge.backtest.models import Trade


@dataclass(frozen=True)
class TimeSlotStats:
    """Aggregate results for trades opened during one UTC hour."""

    hour: int
    trade_count: int
    win_count: int
    total_profit_loss: Decimal
    avg_profit_loss: Decimal
    win_rate: float

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00-{self.hour:02d}:59"


def analyze_by_hour(trades: list[Trade]) -> list[TimeSlotStats]:
    """Group trades by the UTC hour they were opened in, sorted by hour."""
    buckets: dict[int, list[Trade]] = {}
    for trade in trades:
        buckets.setdefault(trade.open_time.hour, []).append(trade)

    slots: list[TimeSlotStats] = []
    for hour in sorted(buckets):
        group = buckets[hour]
        total = sum((t.profit_amount for t in group), Decimal(0))
        wins = sum(1 for t in group if t.is_winning)
        slots.append(
            TimeSlotStats(
                hour=hour,
                trade_count=len(group),
                win_count=wins,
                total_profit_loss=total,
                avg_profit_loss=total / len(group),
                win_rate=round(wins / len(group) * 100, 4),
            )
        )
    return slots


def best_slots(trades: list[Trade], top_n: int = 5) -> list[TimeSlotStats]:
    """Most profitable hours first."""
    slots = analyze_by_hour(trades)
    return sorted(slots, key=lambda s: (-s.total_profit_loss, s.hour))[:top_n]


def worst_slots(trades: list[Trade], top_n: int = 5) -> list[TimeSlotStats]:
    """Least profitable hours first."""
    slots = analyze_by_hour(trades)
    return sorted(slots, key=lambda s: (s.total_profit_loss, s.hour))[:top_n]

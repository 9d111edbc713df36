"""
Daily aggregate shaping.
NO DB. NO NETWORK.

Turns whatever the aggregate provider returned into the newest-first,
valid-only, bounded series every ensemble formula reads from.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

from app.domain.models import DailyStat


DEFAULT_LOOKBACK_DAYS = 10


def prepare_series(
    stats: Iterable[DailyStat],
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> List[DailyStat]:
    """
    Drop invalid days, order newest-first and keep the lookback window.

    Raises:
        TypeError: if an element is not a DailyStat
        ValueError: if the same date appears twice among valid days
    """
    valid: List[DailyStat] = []
    seen_dates = set()
    for stat in stats:
        if not isinstance(stat, DailyStat):
            raise TypeError(f"Expected DailyStat, got {type(stat).__name__}")
        if not stat.is_valid:
            continue
        if stat.date in seen_dates:
            raise ValueError(f"Duplicate daily aggregate for {stat.date.isoformat()}")
        seen_dates.add(stat.date)
        valid.append(stat)

    valid.sort(key=lambda s: s.date, reverse=True)
    return valid[:lookback_days]


@dataclass(frozen=True)
class DailySeries:
    """
    Column view over a prepared series (index 0 = today).

    Built once per evaluation and shared by all four formulas.
    """
    closes: Tuple[Decimal, ...]
    highs: Tuple[Decimal, ...]
    lows: Tuple[Decimal, ...]
    buy_volumes: Tuple[int, ...]
    sell_volumes: Tuple[int, ...]
    total_volumes: Tuple[int, ...]
    large_buy_blocks: Tuple[int, ...]
    large_sell_blocks: Tuple[int, ...]

    @classmethod
    def from_stats(cls, stats: List[DailyStat]) -> "DailySeries":
        zero = Decimal('0')
        return cls(
            closes=tuple(s.close_price for s in stats),
            highs=tuple(s.high_price if s.high_price is not None else zero for s in stats),
            lows=tuple(s.low_price if s.low_price is not None else zero for s in stats),
            buy_volumes=tuple(s.buy_volume for s in stats),
            sell_volumes=tuple(s.sell_volume for s in stats),
            total_volumes=tuple(s.total_volume for s in stats),
            large_buy_blocks=tuple(s.large_buy_blocks for s in stats),
            large_sell_blocks=tuple(s.large_sell_blocks for s in stats),
        )

    @property
    def size(self) -> int:
        return len(self.closes)

    @property
    def total_buy_volume(self) -> int:
        return sum(self.buy_volumes)

    @property
    def total_sell_volume(self) -> int:
        return sum(self.sell_volumes)

    @property
    def total_large_buys(self) -> int:
        return sum(self.large_buy_blocks)

    @property
    def total_large_sells(self) -> int:
        return sum(self.large_sell_blocks)


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    Percentage change from previous to current.

    Formula: ((current - previous) / previous) * 100
    """
    if previous <= Decimal('0'):
        raise ValueError("Previous value must be positive")
    return (current - previous) / previous * Decimal('100')


def decimal_mean(values: Iterable[Decimal]) -> Decimal:
    items = list(values)
    if not items:
        return Decimal('0')
    return sum(items, Decimal('0')) / Decimal(len(items))

"""
Daily aggregate builder.
NO DB. NO NETWORK.

Rolls raw trade ticks up into one DailyStat per trading day:
- open / close = price of the first / last trade by time
- high / low = max / min trade price
- buy / sell volume by side, total volume over all sides
- block counts per side (large >= 400k, medium in [100k, 400k))
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from app.domain.models import DailyStat, IntradayTrade, TradeSide

LARGE_BLOCK_VOLUME = 400_000
MEDIUM_BLOCK_VOLUME = 100_000


def build_daily_stats(
    trades: Iterable[IntradayTrade],
    max_days: Optional[int] = None,
) -> List[DailyStat]:
    """
    Aggregate trades of a single security into daily stats, newest first.

    Args:
        trades: Trade ticks in any order
        max_days: Keep only the most recent N trading days

    Returns:
        List of DailyStat (empty when there are no trades)
    """
    by_date: Dict[date, List[IntradayTrade]] = defaultdict(list)
    for trade in trades:
        by_date[trade.trade_date].append(trade)

    days = sorted(by_date, reverse=True)
    if max_days is not None:
        days = days[:max_days]

    return [_aggregate_day(day, by_date[day]) for day in days]


def _aggregate_day(day: date, trades: List[IntradayTrade]) -> DailyStat:
    ordered = sorted(trades, key=lambda t: t.trade_time)
    prices = [t.price for t in ordered]

    buys = [t for t in ordered if t.side == TradeSide.BUY]
    sells = [t for t in ordered if t.side == TradeSide.SELL]

    return DailyStat(
        date=day,
        open_price=ordered[0].price,
        high_price=max(prices),
        low_price=min(prices),
        close_price=ordered[-1].price,
        buy_volume=sum(t.volume for t in buys),
        sell_volume=sum(t.volume for t in sells),
        total_volume=sum(t.volume for t in ordered),
        large_buy_blocks=_count_blocks(buys, LARGE_BLOCK_VOLUME, None),
        large_sell_blocks=_count_blocks(sells, LARGE_BLOCK_VOLUME, None),
        medium_buy_blocks=_count_blocks(buys, MEDIUM_BLOCK_VOLUME, LARGE_BLOCK_VOLUME),
        medium_sell_blocks=_count_blocks(sells, MEDIUM_BLOCK_VOLUME, LARGE_BLOCK_VOLUME),
    )


def _count_blocks(trades: List[IntradayTrade], low: int, high: Optional[int]) -> int:
    return sum(
        1 for t in trades
        if t.volume >= low and (high is None or t.volume < high)
    )

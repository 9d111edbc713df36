"""
In-memory trade store implementing both market data providers.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from app.domain.indicators.daily_series import DEFAULT_LOOKBACK_DAYS
from app.domain.models import DailyStat, IntradayTrade
from app.domain.services.daily_aggregate_engine import build_daily_stats
from app.infrastructure.market_data.types import DataUnavailable


class InMemoryMarketDataProvider:
    """
    Holds raw trades per security code.

    Codes listed in `unavailable` raise DataUnavailable, which lets
    callers exercise the degraded path without a real feed.
    """

    def __init__(
        self,
        trades: Optional[Iterable[IntradayTrade]] = None,
        daily_stats: Optional[Dict[str, List[DailyStat]]] = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ):
        self._trades: Dict[str, List[IntradayTrade]] = defaultdict(list)
        self._daily_stats: Dict[str, List[DailyStat]] = dict(daily_stats or {})
        self._lookback_days = lookback_days
        self.unavailable: Set[str] = set()
        for trade in trades or []:
            self.add_trade(trade)

    def add_trade(self, trade: IntradayTrade) -> None:
        self._trades[trade.code].append(trade)

    def set_daily_stats(self, code: str, stats: List[DailyStat]) -> None:
        """Pin pre-aggregated stats for a code (bypasses trade aggregation)"""
        self._daily_stats[code] = list(stats)

    def _check(self, code: str) -> None:
        if code in self.unavailable:
            raise DataUnavailable(code, "provider marked unavailable")

    async def get_daily_aggregates(self, code: str) -> List[DailyStat]:
        self._check(code)
        if code in self._daily_stats:
            return list(self._daily_stats[code])
        return build_daily_stats(self._trades.get(code, []), max_days=self._lookback_days)

    async def get_latest_trade_date(self, code: str) -> Optional[date]:
        self._check(code)
        trades = self._trades.get(code)
        if not trades:
            return None
        return max(t.trade_date for t in trades)

    async def get_intraday_trades(self, code: str, trade_date: date) -> List[IntradayTrade]:
        self._check(code)
        day_trades = [t for t in self._trades.get(code, []) if t.trade_date == trade_date]
        return sorted(day_trades, key=lambda t: t.trade_time, reverse=True)

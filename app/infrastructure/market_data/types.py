"""
Market data provider protocols for type hints.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from app.domain.models import DailyStat, IntradayTrade


class DataUnavailable(Exception):
    """Provider unreachable, errored or timed out for one security"""

    def __init__(self, code: str, message: str = "market data unavailable"):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class DailyAggregateProvider(Protocol):
    async def get_daily_aggregates(self, code: str) -> Sequence[DailyStat]:
        """Recent daily stats, newest first; empty when there is no history"""
        ...


class IntradayTradeProvider(Protocol):
    async def get_latest_trade_date(self, code: str) -> Optional[date]:
        ...

    async def get_intraday_trades(self, code: str, trade_date: date) -> Sequence[IntradayTrade]:
        """Trades for one day, newest first"""
        ...

"""
Trade Repository
Read side of the trades table, exposed as both market data providers.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.domain.indicators.daily_series import DEFAULT_LOOKBACK_DAYS
from app.domain.models import DailyStat, IntradayTrade, TradeSide
from app.domain.services.daily_aggregate_engine import build_daily_stats
from app.infrastructure.db.models import TradeModel
from app.infrastructure.market_data.types import DataUnavailable

logger = logging.getLogger(__name__)


class TradeRepository:
    """
    Repository for raw trades.

    Opens one session per call; calls may run concurrently.
    Query and connection failures are raised as DataUnavailable.
    """

    def __init__(self, session_factory: async_sessionmaker, lookback_days: int = DEFAULT_LOOKBACK_DAYS):
        self.session_factory = session_factory
        self.lookback_days = lookback_days

    async def get_daily_aggregates(self, code: str) -> List[DailyStat]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(TradeModel.trade_date)
                    .where(TradeModel.code == code)
                    .distinct()
                    .order_by(TradeModel.trade_date.desc())
                    .limit(self.lookback_days)
                )
                dates = list(result.scalars().all())
                if not dates:
                    return []

                result = await session.execute(
                    select(TradeModel).where(
                        TradeModel.code == code,
                        TradeModel.trade_date.in_(dates),
                    )
                )
                trades = [self._to_domain(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as exc:
            raise DataUnavailable(code, f"daily aggregate query failed: {exc}") from exc

        logger.debug("%s: aggregated %d trades over %d days", code, len(trades), len(dates))
        return build_daily_stats(trades)

    async def get_latest_trade_date(self, code: str) -> Optional[date]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(func.max(TradeModel.trade_date)).where(TradeModel.code == code)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise DataUnavailable(code, f"latest trade date query failed: {exc}") from exc

    async def get_intraday_trades(self, code: str, trade_date: date) -> List[IntradayTrade]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(TradeModel)
                    .where(TradeModel.code == code, TradeModel.trade_date == trade_date)
                    .order_by(TradeModel.trade_time.desc(), TradeModel.id.desc())
                )
                return [self._to_domain(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as exc:
            raise DataUnavailable(code, f"intraday trade query failed: {exc}") from exc

    @staticmethod
    def _to_domain(row: TradeModel) -> IntradayTrade:
        return IntradayTrade(
            code=row.code,
            price=Decimal(str(row.price)),
            volume=int(row.volume),
            side=TradeSide.parse(row.side),
            trade_date=row.trade_date,
            trade_time=row.trade_time,
        )

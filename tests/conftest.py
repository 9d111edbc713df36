from datetime import date, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator, List, Sequence, Union

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.domain.models import DailyStat, IntradayTrade, TradeSide
from app.infrastructure.db.database import Base
from app.infrastructure.db import models  # noqa: F401


LATEST_DAY = date(2024, 6, 14)

PerDay = Union[int, Sequence[int]]


def _at(value, i):
    if isinstance(value, (list, tuple)):
        return value[i]
    return value


def make_daily_stats(
    closes: Sequence[Decimal],
    buy_volume: PerDay = 100_000,
    sell_volume: PerDay = 100_000,
    total_volume: PerDay = None,
    large_buy_blocks: PerDay = 0,
    large_sell_blocks: PerDay = 0,
    high_factor: Decimal = Decimal('1'),
    low_factor: Decimal = Decimal('1'),
    latest: date = LATEST_DAY,
) -> List[DailyStat]:
    """Daily stats newest first; closes[0] is the latest day"""
    stats = []
    for i, close in enumerate(closes):
        buy = _at(buy_volume, i)
        sell = _at(sell_volume, i)
        total = _at(total_volume, i) if total_volume is not None else buy + sell
        stats.append(
            DailyStat(
                date=latest - timedelta(days=i),
                open_price=close,
                high_price=close * high_factor,
                low_price=close * low_factor,
                close_price=close,
                buy_volume=buy,
                sell_volume=sell,
                total_volume=total,
                large_buy_blocks=_at(large_buy_blocks, i),
                large_sell_blocks=_at(large_sell_blocks, i),
            )
        )
    return stats


def compounding_closes(days: int, start: Decimal, daily_pct: Decimal) -> List[Decimal]:
    """Closes newest first, each day exactly daily_pct% above the previous one"""
    factor = Decimal('1') + daily_pct / Decimal('100')
    oldest_first = [start]
    for _ in range(days - 1):
        oldest_first.append(oldest_first[-1] * factor)
    return list(reversed(oldest_first))


def rising_stats(days: int = 10) -> List[DailyStat]:
    """+2%/day, buy:sell 2:1, two large buy blocks a day, high = close, low = close * 0.98"""
    return make_daily_stats(
        compounding_closes(days, Decimal('50000'), Decimal('2')),
        buy_volume=200_000,
        sell_volume=100_000,
        large_buy_blocks=2,
        low_factor=Decimal('0.98'),
    )


def falling_stats(days: int = 10) -> List[DailyStat]:
    """Mirror of rising_stats: -2%/day, sell:buy 2:1, two large sell blocks a day"""
    return make_daily_stats(
        compounding_closes(days, Decimal('50000'), Decimal('-2')),
        buy_volume=100_000,
        sell_volume=200_000,
        large_sell_blocks=2,
        high_factor=Decimal('1.02'),
    )


def make_trade(
    price: str,
    volume: int,
    side: str,
    at: time,
    code: str = "FPT",
    trade_date: date = LATEST_DAY,
) -> IntradayTrade:
    return IntradayTrade(
        code=code,
        price=Decimal(price),
        volume=volume,
        side=TradeSide.parse(side),
        trade_date=trade_date,
        trade_time=at,
    )


@pytest.fixture()
def stats_factory():
    return make_daily_stats


@pytest.fixture()
def closes_factory():
    return compounding_closes


@pytest.fixture()
def rising_series_stats() -> List[DailyStat]:
    return rising_stats()


@pytest.fixture()
def falling_series_stats() -> List[DailyStat]:
    return falling_stats()


@pytest.fixture()
def trade_factory():
    return make_trade


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "trades.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def db_session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(db_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with db_session_factory() as session:
        yield session

import pytest
from sqlalchemy import inspect

from app.config import settings
from app.infrastructure.db import database


@pytest.mark.unit
@pytest.mark.parametrize("url,expected", [
    ("postgresql://u:p@db/trade", "postgresql+asyncpg://u:p@db/trade"),
    ("postgres://u:p@db/trade", "postgresql+asyncpg://u:p@db/trade"),
    ("sqlite+aiosqlite:///trades.db", "sqlite+aiosqlite:///trades.db"),
])
def test_async_database_url(url, expected):
    assert database.async_database_url(url) == expected


@pytest.mark.integration
@pytest.mark.asyncio
async def test_init_db_creates_trades_table(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
    await database.close_db()
    try:
        await database.init_db()

        async with database.get_engine().connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert "trades" in tables
    finally:
        await database.close_db()

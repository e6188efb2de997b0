"""Integration-test fixtures.

These tests need a PostgreSQL reachable at settings.DATABASE_URL with the
alembic migrations applied (`alembic upgrade head`). They are skipped when the
database cannot be reached. Each test gets its own NullPool engine, so no
connection outlives the test's event loop, and starts from empty tables.
"""

from collections.abc import AsyncIterator

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from config.settings import settings
from src.pm_ledger.infrastructure.persistence import SqlMarketLedger


@pytest.fixture
async def sql_ledger() -> AsyncIterator[SqlMarketLedger]:
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.execute(text("TRUNCATE bets, markets, users"))
    except (SQLAlchemyError, OSError) as exc:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not available: {exc.__class__.__name__}")

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield SqlMarketLedger(session_factory=factory)
    await engine.dispose()

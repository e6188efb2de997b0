"""Shared test fixtures.

Every test runs against a fresh InMemoryMarketLedger; the HTTP client swaps it
in through app.dependency_overrides so no database is needed.
"""

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.main import app
from src.pm_ledger.dependencies import get_ledger
from src.pm_ledger.infrastructure.memory import InMemoryMarketLedger

ADMIN_ID = "admin-1"


@pytest.fixture
def ledger() -> InMemoryMarketLedger:
    return InMemoryMarketLedger()


@pytest.fixture
def admin_ids(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    monkeypatch.setattr(settings, "ADMIN_USER_IDS", [ADMIN_ID])
    return [ADMIN_ID]


@pytest.fixture
async def client(
    ledger: InMemoryMarketLedger, admin_ids: list[str]
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_ledger] = lambda: ledger
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_ledger, None)

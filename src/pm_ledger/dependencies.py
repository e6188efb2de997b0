"""FastAPI dependency: get_ledger.

One ledger instance per process, chosen by settings.LEDGER_BACKEND.
Tests swap it out with app.dependency_overrides[get_ledger].
"""

import logging

from config.settings import settings
from src.pm_common.enums import LedgerBackend
from src.pm_ledger.domain.repository import MarketLedgerProtocol

logger = logging.getLogger(__name__)

_ledger: MarketLedgerProtocol | None = None


def build_ledger(backend: str) -> MarketLedgerProtocol:
    if backend == LedgerBackend.MEMORY:
        from src.pm_ledger.infrastructure.memory import InMemoryMarketLedger

        return InMemoryMarketLedger()
    from src.pm_ledger.infrastructure.persistence import SqlMarketLedger

    return SqlMarketLedger()


def get_ledger() -> MarketLedgerProtocol:
    global _ledger  # noqa: PLW0603
    if _ledger is None:
        _ledger = build_ledger(settings.LEDGER_BACKEND)
        logger.info("Ledger backend: %s", settings.LEDGER_BACKEND)
    return _ledger

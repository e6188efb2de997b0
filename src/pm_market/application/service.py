"""MarketQueryService: read accessors for markets and their bets.

All methods are read-only; each ledger call is its own short transaction.
"""

from src.pm_common.errors import MarketNotFoundError
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_market.application.schemas import (
    BetItem,
    MarketBetsResponse,
    MarketDetail,
    MarketListResponse,
)


class MarketQueryService:
    def __init__(self, ledger: MarketLedgerProtocol) -> None:
        self._ledger = ledger

    async def list_open_markets(self) -> MarketListResponse:
        markets = await self._ledger.list_open_markets()
        return MarketListResponse(items=[MarketDetail.from_domain(m) for m in markets])

    async def get_market(self, market_id: str) -> MarketDetail:
        market = await self._ledger.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketDetail.from_domain(market)

    async def list_bets(self, market_id: str) -> MarketBetsResponse:
        market = await self._ledger.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        bets = await self._ledger.list_bets(market_id)
        return MarketBetsResponse(
            market_id=market_id,
            total_stake=market.total_stake,
            probability=market.probability,
            bets=[BetItem.from_domain(b) for b in bets],
        )

"""SettlementService: resolve a market and pay every participant in one commit."""

import logging
from collections.abc import Callable
from datetime import datetime

from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import AlreadyResolvedError, MarketNotFoundError, NoParticipantsError
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_settlement.domain.settlement import BetSettlement, settle_bet

logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(
        self,
        ledger: MarketLedgerProtocol,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ledger = ledger
        self._clock = clock

    async def resolve_market(self, market_id: str, outcome: bool) -> list[BetSettlement]:
        market = await self._ledger.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.resolved:
            raise AlreadyResolvedError(market_id)

        bets = await self._ledger.list_bets(market_id)
        if not bets:
            raise NoParticipantsError(market_id)

        settlements = [settle_bet(bet, outcome) for bet in bets]
        # A concurrent resolver that got here first makes this raise AlreadyResolvedError.
        await self._ledger.commit_resolution(market_id, outcome, self._clock(), settlements)

        logger.info(
            "Market resolved: id=%s outcome=%s participants=%d paid=%d",
            market_id,
            "YES" if outcome else "NO",
            len(settlements),
            sum(s.payout for s in settlements),
        )
        return settlements

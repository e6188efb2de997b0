"""BettingService: market creation and the place-or-replace-bet operation.

Reads go through the ledger one call at a time; the only write is the single
atomic commit at the end, so a rejected or failed placement changes nothing.

Placement is not serialized per market. Two concurrent placements on the
same market each price against the "other bets" they read, and the last
commit's probability wins even though it was computed from a stale view.
The (market_id, user_id) upsert still guarantees one bet row per user, and
the ledger rejects a commit whose replaced stake no longer matches the stored
bet (PersistenceFailureError), so total_staked never counts a stake twice.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from src.pm_betting.domain.models import BetPlacement
from src.pm_common.datetime_utils import ensure_utc, utc_now
from src.pm_common.errors import (
    AlreadyResolvedError,
    InsufficientBankrollError,
    InternalError,
    InvalidDeadlineError,
    InvalidQuestionError,
    MarketExpiredError,
    MarketNotFoundError,
)
from src.pm_common.id_generator import generate_market_id
from src.pm_ledger.domain.models import Market
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_pricing.domain.pricing import (
    DEFAULT_PROBABILITY,
    clamp_stake,
    recompute_probability,
    validate_probability,
)

logger = logging.getLogger(__name__)


class BettingService:
    def __init__(
        self,
        ledger: MarketLedgerProtocol,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_market_id,
    ) -> None:
        self._ledger = ledger
        self._clock = clock
        self._id_factory = id_factory

    async def create_market(
        self, question: str, creator: str, deadline: datetime
    ) -> Market:
        question = question.strip()
        if not question:
            raise InvalidQuestionError()
        deadline = ensure_utc(deadline)
        if deadline <= self._clock():
            raise InvalidDeadlineError(deadline.isoformat())

        market = Market(
            id=self._id_factory(),
            question=question,
            creator=creator,
            deadline=deadline,
            probability=DEFAULT_PROBABILITY,
            total_stake=0,
            active=True,
            created_at=self._clock(),
        )
        await self._ledger.create_market(market)
        logger.info("Market created: id=%s creator=%s deadline=%s", market.id, creator, deadline)
        return market

    async def place_bet(
        self,
        market_id: str,
        user_id: str,
        desired_amount: int,
        probability: float,
    ) -> BetPlacement:
        validate_probability(probability)

        market = await self._ledger.get_market(market_id)
        if market is None or not market.active:
            raise MarketNotFoundError(market_id)
        if market.resolved:
            raise AlreadyResolvedError(market_id)
        if self._clock() > ensure_utc(market.deadline):
            raise MarketExpiredError(market_id)

        stake = clamp_stake(desired_amount)
        was_capped = stake < desired_amount

        user = await self._ledger.get_or_create_user(user_id)
        old_bet = await self._ledger.get_open_bet(market_id, user_id)
        old_stake = old_bet.stake if old_bet else 0

        # The user's own prior stake on this market is freed before the check.
        available = user.bankroll - user.total_staked + old_stake
        if stake > available:
            raise InsufficientBankrollError(stake, available)

        others = [b for b in await self._ledger.list_bets(market_id) if b.user_id != user_id]
        new_probability = recompute_probability(
            [b.stake for b in others],
            [b.probability for b in others],
            stake,
            probability,
        )
        new_total_stake = market.total_stake - old_stake + stake

        await self._ledger.commit_bet_placement(
            market_id,
            user_id,
            stake,
            probability,
            new_probability,
            new_total_stake,
            stake - old_stake,
        )
        logger.info(
            "Bet placed: market=%s user=%s stake=%d prob=%.4f replaced=%s -> market_prob=%.4f",
            market_id,
            user_id,
            stake,
            probability,
            old_bet is not None,
            new_probability,
        )

        fresh_user = await self._ledger.get_user(user_id)
        fresh_market = await self._ledger.get_market(market_id)
        if fresh_user is None or fresh_market is None:
            raise InternalError("Bet committed but snapshot re-read failed")
        return BetPlacement(
            stake_placed=stake,
            new_market_probability=new_probability,
            was_capped=was_capped,
            user=fresh_user,
            market=fresh_market,
        )

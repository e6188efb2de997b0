"""InMemoryMarketLedger: process-local implementation of MarketLedgerProtocol.

State lives in plain dicts guarded by one asyncio.Lock. Commits build every
new row first and only then swap them into the dicts, so a commit that fails
validation leaves nothing applied. Readers get copies; mutating a returned
dataclass never touches ledger state.

Suitable for tests and single-worker deployments. State is lost on restart.
"""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import LeaderboardKind
from src.pm_common.errors import (
    AlreadyResolvedError,
    DuplicateIdError,
    InsufficientBankrollError,
    InternalError,
    MarketNotFoundError,
    PersistenceFailureError,
)
from src.pm_ledger.domain.models import DEFAULT_ACCURACY, STARTING_BANKROLL, Bet, Market, User
from src.pm_ledger.domain.repository import (
    LEADERBOARD_MIN_BETS,
    MARKET_UPDATABLE_FIELDS,
    USER_UPDATABLE_FIELDS,
    check_update_fields,
    settlements_cover,
)
from src.pm_settlement.domain.settlement import BetSettlement, apply_settlement


def _leaderboard_key(kind: LeaderboardKind, u: User) -> tuple[Any, ...]:
    # Mirrors the ORDER BY clauses of the SQL ledger (all DESC, then id ASC).
    if kind is LeaderboardKind.ACCURACY:
        return (-u.accuracy, -u.bets_placed, u.id)
    if kind is LeaderboardKind.PROFIT:
        return (-u.total_profit, -u.bankroll, u.id)
    if kind is LeaderboardKind.VOLUME:
        return (-u.bets_placed, -u.markets_created, u.id)
    return (-u.best_streak, -u.prediction_streak, -u.accuracy, u.id)


class InMemoryMarketLedger:
    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._markets: dict[str, Market] = {}
        self._bets: dict[tuple[str, str], Bet] = {}
        self._lock = asyncio.Lock()

    def _new_user(self, user_id: str) -> User:
        now = utc_now()
        return User(id=user_id, bankroll=STARTING_BANKROLL, created_at=now, last_active=now)

    # --- users ---

    async def get_or_create_user(self, user_id: str) -> User:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                user = self._new_user(user_id)
            else:
                user = replace(user, last_active=utc_now())
            self._users[user_id] = user
            return replace(user)

    async def get_user(self, user_id: str) -> User | None:
        async with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    async def apply_user_update(self, user_id: str, fields: Mapping[str, Any]) -> None:
        check_update_fields(fields, USER_UPDATABLE_FIELDS)
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise InternalError(f"User not found: {user_id}")
            self._users[user_id] = replace(user, **fields, last_active=utc_now())

    async def reset_user_stats(self, user_id: str) -> User | None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            reset = replace(
                user,
                bankroll=max(STARTING_BANKROLL, user.total_staked),
                bets_placed=0,
                bets_won=0,
                accuracy=DEFAULT_ACCURACY,
                total_profit=0,
                biggest_win=0,
                prediction_streak=0,
                best_streak=0,
                markets_created=0,
                last_active=utc_now(),
            )
            self._users[user_id] = reset
            return replace(reset)

    async def leaderboard(self, kind: LeaderboardKind, limit: int) -> list[User]:
        async with self._lock:
            eligible = [
                u for u in self._users.values() if u.bets_placed >= LEADERBOARD_MIN_BETS[kind]
            ]
        eligible.sort(key=lambda u: _leaderboard_key(kind, u))
        return [replace(u) for u in eligible[:limit]]

    # --- markets ---

    async def get_market(self, market_id: str) -> Market | None:
        async with self._lock:
            market = self._markets.get(market_id)
            return replace(market) if market else None

    async def create_market(self, market: Market) -> None:
        async with self._lock:
            if market.id in self._markets:
                raise DuplicateIdError(market.id)
            creator = self._users.get(market.creator) or self._new_user(market.creator)
            self._markets[market.id] = replace(market, created_at=market.created_at or utc_now())
            self._users[creator.id] = replace(
                creator, markets_created=creator.markets_created + 1, last_active=utc_now()
            )

    async def list_open_markets(self) -> list[Market]:
        async with self._lock:
            markets = [replace(m) for m in self._markets.values() if m.is_open]
        # ids are time-derived, so they break created_at ties in creation order
        markets.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        return markets

    async def apply_market_update(
        self, market_id: str, fields: Mapping[str, Any]
    ) -> None:
        check_update_fields(fields, MARKET_UPDATABLE_FIELDS)
        async with self._lock:
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            self._markets[market_id] = replace(market, **fields)

    # --- bets ---

    async def get_open_bet(self, market_id: str, user_id: str) -> Bet | None:
        async with self._lock:
            bet = self._bets.get((market_id, user_id))
            return replace(bet) if bet else None

    async def list_bets(self, market_id: str) -> list[Bet]:
        async with self._lock:
            bets = [replace(b) for (m_id, _), b in self._bets.items() if m_id == market_id]
        bets.sort(key=lambda b: (b.created_at, b.user_id))
        return bets

    def _build_bet(self, market_id: str, user_id: str, stake: int, probability: float) -> Bet:
        now = utc_now()
        existing = self._bets.get((market_id, user_id))
        if existing is None:
            return Bet(market_id, user_id, stake, probability, created_at=now, updated_at=now)
        return replace(existing, stake=stake, probability=probability, updated_at=now)

    async def upsert_bet(
        self, market_id: str, user_id: str, stake: int, probability: float
    ) -> None:
        async with self._lock:
            self._bets[(market_id, user_id)] = self._build_bet(
                market_id, user_id, stake, probability
            )

    # --- atomic commits ---

    async def commit_bet_placement(
        self,
        market_id: str,
        user_id: str,
        stake: int,
        probability: float,
        new_market_probability: float,
        new_total_stake: int,
        user_total_staked_delta: int,
    ) -> None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise InternalError(f"User not found: {user_id}")
            if user.total_staked + user_total_staked_delta > user.bankroll:
                raise InsufficientBankrollError(
                    user_total_staked_delta, user.bankroll - user.total_staked
                )
            held = self._bets.get((market_id, user_id))
            if (held.stake if held else 0) != stake - user_total_staked_delta:
                raise PersistenceFailureError("Bet changed while placing; retry")
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.resolved:
                raise AlreadyResolvedError(market_id)

            new_user = replace(
                user,
                total_staked=user.total_staked + user_total_staked_delta,
                last_active=utc_now(),
            )
            new_bet = self._build_bet(market_id, user_id, stake, probability)
            new_market = replace(
                market, probability=new_market_probability, total_stake=new_total_stake
            )

            self._users[user_id] = new_user
            self._bets[(market_id, user_id)] = new_bet
            self._markets[market_id] = new_market

    async def commit_resolution(
        self,
        market_id: str,
        outcome: bool,
        resolved_at: datetime,
        settlements: Sequence[BetSettlement],
    ) -> None:
        async with self._lock:
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.resolved:
                raise AlreadyResolvedError(market_id)
            bets = [b for (m_id, _), b in self._bets.items() if m_id == market_id]
            if not settlements_cover(bets, settlements):
                raise PersistenceFailureError("Bets changed while resolving; retry")

            # Built aside and swapped in after every settlement validated.
            scratch: dict[str, User] = {}
            for s in settlements:
                user = scratch.get(s.user_id) or self._users.get(s.user_id)
                if user is None:
                    raise InternalError(f"Settlement for unknown user {s.user_id}")
                scratch[s.user_id] = replace(
                    apply_settlement(user, s), last_active=utc_now()
                )

            self._markets[market_id] = replace(
                market, resolved=True, resolution=outcome, resolved_at=resolved_at
            )
            self._users.update(scratch)

# src/pm_ledger/domain/repository.py
"""Ledger Protocol: the storage capability the betting and settlement services need.

Unit tests inject a mock or the in-memory ledger; production uses the
PostgreSQL implementation. Each method is its own unit of work: the
implementation opens, commits and rolls back its transaction internally.
The two commit_* methods are all-or-nothing over every row they touch.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from src.pm_common.enums import LeaderboardKind
from src.pm_ledger.domain.models import Bet, Market, User
from src.pm_settlement.domain.settlement import BetSettlement


class MarketLedgerProtocol(Protocol):
    async def get_or_create_user(self, user_id: str) -> User: ...

    async def get_user(self, user_id: str) -> User | None: ...

    async def get_market(self, market_id: str) -> Market | None: ...

    async def create_market(self, market: Market) -> None: ...

    async def list_open_markets(self) -> list[Market]: ...

    async def get_open_bet(self, market_id: str, user_id: str) -> Bet | None: ...

    async def list_bets(self, market_id: str) -> list[Bet]: ...

    async def upsert_bet(
        self, market_id: str, user_id: str, stake: int, probability: float
    ) -> None: ...

    async def apply_market_update(
        self, market_id: str, fields: Mapping[str, Any]
    ) -> None: ...

    async def apply_user_update(
        self, user_id: str, fields: Mapping[str, Any]
    ) -> None: ...

    async def commit_bet_placement(
        self,
        market_id: str,
        user_id: str,
        stake: int,
        probability: float,
        new_market_probability: float,
        new_total_stake: int,
        user_total_staked_delta: int,
    ) -> None: ...

    async def commit_resolution(
        self,
        market_id: str,
        outcome: bool,
        resolved_at: datetime,
        settlements: Sequence[BetSettlement],
    ) -> None: ...

    async def leaderboard(self, kind: LeaderboardKind, limit: int) -> list[User]: ...

    async def reset_user_stats(self, user_id: str) -> User | None: ...


# Columns apply_market_update / apply_user_update may touch.
MARKET_UPDATABLE_FIELDS = frozenset(
    {"question", "deadline", "probability", "total_stake", "active",
     "resolved", "resolution", "resolved_at"}
)
USER_UPDATABLE_FIELDS = frozenset(
    {"bankroll", "total_staked", "bets_placed", "bets_won", "accuracy",
     "total_profit", "biggest_win", "prediction_streak", "best_streak",
     "markets_created"}
)


def check_update_fields(fields: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)}")


# Leaderboard eligibility: minimum resolved bets per board.
LEADERBOARD_MIN_BETS: dict[LeaderboardKind, int] = {
    LeaderboardKind.ACCURACY: 3,
    LeaderboardKind.PROFIT: 1,
    LeaderboardKind.VOLUME: 1,
    LeaderboardKind.STREAK: 1,
}


def settlements_cover(bets: Sequence[Bet], settlements: Sequence[BetSettlement]) -> bool:
    """True when settlements were computed from exactly these bets."""
    return sorted((b.user_id, b.stake, b.probability) for b in bets) == sorted(
        (s.user_id, s.stake, s.probability) for s in settlements
    )

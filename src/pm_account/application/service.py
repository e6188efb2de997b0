"""AccountService: user stats, leaderboards and the admin stat reset.

Leaderboards are read-only projections over users; eligibility and ordering
live in the ledger (LEADERBOARD_MIN_BETS and the per-board ORDER BY).
"""

import logging

from src.pm_account.application.schemas import (
    LeaderboardEntry,
    LeaderboardResponse,
    RankResponse,
    UserStats,
)
from src.pm_common.enums import LeaderboardKind
from src.pm_common.errors import UnknownLeaderboardError, UserNotFoundError
from src.pm_ledger.domain.repository import MarketLedgerProtocol

logger = logging.getLogger(__name__)

# Upper bound on users scanned when looking up a single user's rank.
_RANK_SCAN_LIMIT = 10_000


def parse_leaderboard_kind(kind: str) -> LeaderboardKind:
    """Accept 'accuracy' | 'profit' | 'volume' | 'streak' (plural 'streaks' too)."""
    normalized = kind.strip().lower()
    if normalized == "streaks":
        normalized = "streak"
    try:
        return LeaderboardKind(normalized)
    except ValueError:
        raise UnknownLeaderboardError(kind) from None


class AccountService:
    def __init__(self, ledger: MarketLedgerProtocol) -> None:
        self._ledger = ledger

    async def get_or_create_stats(self, user_id: str) -> UserStats:
        user = await self._ledger.get_or_create_user(user_id)
        return UserStats.from_domain(user)

    async def get_stats(self, user_id: str) -> UserStats:
        user = await self._ledger.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return UserStats.from_domain(user)

    async def leaderboard(self, kind: str, limit: int) -> LeaderboardResponse:
        board = parse_leaderboard_kind(kind)
        users = await self._ledger.leaderboard(board, limit)
        return LeaderboardResponse(
            kind=board.value,
            entries=[
                LeaderboardEntry(rank=i, user=UserStats.from_domain(u))
                for i, u in enumerate(users, start=1)
            ],
        )

    async def rank_of(self, kind: str, user_id: str) -> RankResponse:
        board = parse_leaderboard_kind(kind)
        users = await self._ledger.leaderboard(board, _RANK_SCAN_LIMIT)
        rank = next((i for i, u in enumerate(users, start=1) if u.id == user_id), None)
        return RankResponse(kind=board.value, user_id=user_id, rank=rank)

    async def reset_stats(self, user_id: str, admin_id: str) -> UserStats:
        user = await self._ledger.reset_user_stats(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        logger.warning("Stats reset: user=%s by admin=%s", user_id, admin_id)
        return UserStats.from_domain(user)

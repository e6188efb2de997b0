"""Pydantic schemas for pm_account API: user stats and leaderboards."""

from pydantic import BaseModel

from src.pm_ledger.domain.models import User


class UserStats(BaseModel):
    id: str
    bankroll: int
    total_staked: int
    available_bankroll: int
    bets_placed: int
    bets_won: int
    accuracy: float
    total_profit: int
    biggest_win: int
    prediction_streak: int
    best_streak: int
    markets_created: int
    last_active: str | None

    @classmethod
    def from_domain(cls, u: User) -> "UserStats":
        return cls(
            id=u.id,
            bankroll=u.bankroll,
            total_staked=u.total_staked,
            available_bankroll=u.available_bankroll,
            bets_placed=u.bets_placed,
            bets_won=u.bets_won,
            accuracy=u.accuracy,
            total_profit=u.total_profit,
            biggest_win=u.biggest_win,
            prediction_streak=u.prediction_streak,
            best_streak=u.best_streak,
            markets_created=u.markets_created,
            last_active=u.last_active.isoformat() if u.last_active else None,
        )


class LeaderboardEntry(BaseModel):
    rank: int
    user: UserStats


class LeaderboardResponse(BaseModel):
    kind: str
    entries: list[LeaderboardEntry]


class RankResponse(BaseModel):
    kind: str
    user_id: str
    rank: int | None  # None when the user is not eligible for this board

"""Domain models for pm_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

STARTING_BANKROLL = 1000
DEFAULT_ACCURACY = 0.5


@dataclass
class User:
    id: str
    bankroll: int = STARTING_BANKROLL
    total_staked: int = 0        # sum of stakes on this user's open bets
    bets_placed: int = 0         # resolved bets only
    bets_won: int = 0
    accuracy: float = DEFAULT_ACCURACY
    total_profit: int = 0        # realized payout - stake, signed
    biggest_win: int = 0         # largest single payout
    prediction_streak: int = 0
    best_streak: int = 0
    markets_created: int = 0
    created_at: datetime | None = None
    last_active: datetime | None = None

    @property
    def available_bankroll(self) -> int:
        return self.bankroll - self.total_staked


@dataclass
class Market:
    id: str
    question: str
    creator: str
    deadline: datetime
    probability: float = 0.5
    total_stake: int = 0
    active: bool = True
    resolved: bool = False
    resolution: bool | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.active and not self.resolved


@dataclass
class Bet:
    """At most one per (market_id, user_id); re-placement replaces it."""

    market_id: str
    user_id: str
    stake: int
    probability: float
    created_at: datetime | None = None
    updated_at: datetime | None = None

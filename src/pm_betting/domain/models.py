"""Domain models for pm_betting: pure dataclasses."""

from dataclasses import dataclass

from src.pm_ledger.domain.models import Market, User


@dataclass
class BetPlacement:
    stake_placed: int
    new_market_probability: float
    was_capped: bool
    user: User
    market: Market

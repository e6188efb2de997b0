"""Pydantic schemas for pm_betting: market creation and bet placement.

Probability bounds are enforced by the service (InvalidProbabilityError), not
here, so API callers and in-process callers get the same error code.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.pm_account.application.schemas import UserStats
from src.pm_betting.domain.models import BetPlacement
from src.pm_market.application.schemas import MarketDetail


class CreateMarketRequest(BaseModel):
    question: str = Field(..., max_length=500)
    deadline: datetime


class PlaceBetRequest(BaseModel):
    amount: int = Field(..., description="Desired stake; clamped to [1, 100]")
    probability: float = Field(..., description="Belief the market resolves YES, 0..1")


class BetPlacementResponse(BaseModel):
    stake_placed: int
    new_market_probability: float
    was_capped: bool
    user: UserStats
    market: MarketDetail

    @classmethod
    def from_domain(cls, p: BetPlacement) -> "BetPlacementResponse":
        return cls(
            stake_placed=p.stake_placed,
            new_market_probability=p.new_market_probability,
            was_capped=p.was_capped,
            user=UserStats.from_domain(p.user),
            market=MarketDetail.from_domain(p.market),
        )

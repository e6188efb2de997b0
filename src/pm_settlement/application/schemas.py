"""Pydantic schemas for pm_settlement."""

from pydantic import BaseModel

from src.pm_settlement.domain.settlement import BetSettlement


class ResolveRequest(BaseModel):
    outcome: bool


class PayoutItem(BaseModel):
    user_id: str
    stake: int
    payout: int
    profit: int
    accuracy: float
    was_correct: bool

    @classmethod
    def from_domain(cls, s: BetSettlement) -> "PayoutItem":
        return cls(
            user_id=s.user_id,
            stake=s.stake,
            payout=s.payout,
            profit=s.profit,
            accuracy=s.accuracy,
            was_correct=s.was_correct,
        )


class ResolutionResponse(BaseModel):
    market_id: str
    outcome: bool
    payouts: list[PayoutItem]

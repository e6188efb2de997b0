"""Pydantic schemas for pm_market API responses.

Timestamps are ISO-8601 strings; probabilities stay floats in [0, 1]. Turning
them into percentages or chat text is the caller's job.
"""

from datetime import datetime

from pydantic import BaseModel

from src.pm_ledger.domain.models import Bet, Market


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


class MarketDetail(BaseModel):
    id: str
    question: str
    creator: str
    deadline: str
    probability: float
    total_stake: int
    active: bool
    resolved: bool
    resolution: bool | None
    resolved_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, m: Market) -> "MarketDetail":
        return cls(
            id=m.id,
            question=m.question,
            creator=m.creator,
            deadline=m.deadline.isoformat(),
            probability=m.probability,
            total_stake=m.total_stake,
            active=m.active,
            resolved=m.resolved,
            resolution=m.resolution,
            resolved_at=_iso(m.resolved_at),
            created_at=_iso(m.created_at),
        )


class MarketListResponse(BaseModel):
    items: list[MarketDetail]


class BetItem(BaseModel):
    market_id: str
    user_id: str
    stake: int
    probability: float
    updated_at: str | None

    @classmethod
    def from_domain(cls, b: Bet) -> "BetItem":
        return cls(
            market_id=b.market_id,
            user_id=b.user_id,
            stake=b.stake,
            probability=b.probability,
            updated_at=_iso(b.updated_at),
        )


class MarketBetsResponse(BaseModel):
    market_id: str
    total_stake: int
    probability: float
    bets: list[BetItem]

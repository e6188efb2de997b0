"""pm_betting REST endpoints.

POST /markets                         create a market (caller is the creator)
POST /markets/{market_id}/bets        place or replace the caller's bet
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_betting.application.schemas import (
    BetPlacementResponse,
    CreateMarketRequest,
    PlaceBetRequest,
)
from src.pm_betting.application.service import BettingService
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user_id
from src.pm_ledger.dependencies import get_ledger
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_market.application.schemas import MarketDetail

router = APIRouter(prefix="/markets", tags=["betting"])


@router.post("")
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    market = await BettingService(ledger).create_market(body.question, user_id, body.deadline)
    return success_response(MarketDetail.from_domain(market).model_dump(), request)


@router.post("/{market_id}/bets")
async def place_bet(
    market_id: str,
    body: PlaceBetRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    placement = await BettingService(ledger).place_bet(
        market_id, user_id, body.amount, body.probability
    )
    return success_response(BetPlacementResponse.from_domain(placement).model_dump(), request)

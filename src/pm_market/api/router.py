"""pm_market REST endpoints (read-only).

GET /markets                       open markets, newest first
GET /markets/{market_id}           full detail
GET /markets/{market_id}/bets      every open bet on the market
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user_id
from src.pm_ledger.dependencies import get_ledger
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_market.application.service import MarketQueryService

router = APIRouter(prefix="/markets", tags=["markets"])


@router.get("")
async def list_markets(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    result = await MarketQueryService(ledger).list_open_markets()
    return success_response(result.model_dump(), request)


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    result = await MarketQueryService(ledger).get_market(market_id)
    return success_response(result.model_dump(), request)


@router.get("/{market_id}/bets")
async def list_market_bets(
    market_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    result = await MarketQueryService(ledger).list_bets(market_id)
    return success_response(result.model_dump(), request)

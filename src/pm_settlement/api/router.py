# src/pm_settlement/api/router.py
"""Admin resolution endpoint."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_admin
from src.pm_ledger.dependencies import get_ledger
from src.pm_ledger.domain.repository import MarketLedgerProtocol
from src.pm_settlement.application.schemas import (
    PayoutItem,
    ResolutionResponse,
    ResolveRequest,
)
from src.pm_settlement.application.service import SettlementService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/markets/{market_id}/resolve")
async def resolve_market(
    market_id: str,
    body: ResolveRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    settlements = await SettlementService(ledger).resolve_market(market_id, body.outcome)
    result = ResolutionResponse(
        market_id=market_id,
        outcome=body.outcome,
        payouts=[PayoutItem.from_domain(s) for s in settlements],
    )
    return success_response(result.model_dump(), request)

"""pm_account REST API: user stats and leaderboards.

GET  /users/me                                  caller's stats (created on first call)
GET  /users/{user_id}                           another user's stats
GET  /leaderboards/{kind}?limit=                accuracy | profit | volume | streak
GET  /leaderboards/{kind}/rank/{user_id}        one user's position on a board
POST /admin/users/{user_id}/reset-stats         admin only
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_account.application.service import AccountService
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user_id, require_admin
from src.pm_ledger.dependencies import get_ledger
from src.pm_ledger.domain.repository import MarketLedgerProtocol

router = APIRouter(tags=["account"])


@router.get("/users/me")
async def get_my_stats(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    data = await AccountService(ledger).get_or_create_stats(user_id)
    return success_response(data.model_dump(), request)


@router.get("/users/{target_user_id}")
async def get_user_stats(
    target_user_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    data = await AccountService(ledger).get_stats(target_user_id)
    return success_response(data.model_dump(), request)


@router.get("/leaderboards/{kind}")
async def get_leaderboard(
    kind: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
    limit: int = Query(10, ge=1, le=50),
) -> ApiResponse:
    data = await AccountService(ledger).leaderboard(kind, limit)
    return success_response(data.model_dump(), request)


@router.get("/leaderboards/{kind}/rank/{target_user_id}")
async def get_leaderboard_rank(
    kind: str,
    target_user_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    data = await AccountService(ledger).rank_of(kind, target_user_id)
    return success_response(data.model_dump(), request)


@router.post("/admin/users/{target_user_id}/reset-stats")
async def reset_user_stats(
    target_user_id: str,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    ledger: Annotated[MarketLedgerProtocol, Depends(get_ledger)],
) -> ApiResponse:
    data = await AccountService(ledger).reset_stats(target_user_id, admin_id)
    return success_response(data.model_dump(), request)

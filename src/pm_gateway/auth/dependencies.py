"""FastAPI dependencies: caller identity.

The chat adapter in front of this service has already authenticated the
user with the chat platform and forwards the opaque platform user id in the
X-User-Id header.

Usage in any router:
    from src.pm_gateway.auth.dependencies import get_current_user_id

    @router.post("/markets")
    async def create(user_id: str = Depends(get_current_user_id)):
        ...
"""

from typing import Annotated

from fastapi import Depends, Header

from config.settings import settings
from src.pm_common.errors import ForbiddenError, MissingUserIdError


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Return the caller's user id. Raises 401 (MissingUserIdError) if absent."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise MissingUserIdError()
    return user_id


async def require_admin(
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> str:
    """Verify the caller is listed in settings.ADMIN_USER_IDS.

    Raises 403 (ForbiddenError) otherwise. Protects resolve and stat reset.
    """
    if user_id not in settings.ADMIN_USER_IDS:
        raise ForbiddenError(user_id)
    return user_id

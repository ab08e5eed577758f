from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import user_var
from src.core.security import decode_token
from src.db.session import get_async_session
from src.domain.projection import HeaderSchema
from src.schemas.auth import CurrentUser
from src.services.purchase_orders import PurchaseOrderService

logger = logging.getLogger(__name__)

# Tokens are issued by the external identity provider; tokenUrl is informational.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# PUBLIC_INTERFACE
async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """
    Resolve the current user from the Authorization bearer token.

    Raises:
        HTTPException: 401 when the token is invalid, expired or has no subject.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    roles = payload.get("roles") or []
    if not isinstance(roles, list):
        roles = [str(roles)]
    user_var.set(str(subject))
    return CurrentUser(username=str(subject), roles=[str(r) for r in roles])


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to hold one of the
    specified roles (or matching permission codes). 'admin' always passes.
    """

    async def _dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_any("admin", *required):
            logger.warning("User %s lacks any of roles %s", user.username, required)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _dep


# PUBLIC_INTERFACE
def get_header_schema(request: Request) -> HeaderSchema:
    """Return the header column set resolved when the application started."""
    return request.app.state.header_schema


# PUBLIC_INTERFACE
def get_purchase_order_service(
    session: AsyncSession = Depends(get_async_session),
    header_schema: HeaderSchema = Depends(get_header_schema),
) -> PurchaseOrderService:
    """Service bound to the request's session and the deployment's header schema."""
    return PurchaseOrderService(session, header_schema)

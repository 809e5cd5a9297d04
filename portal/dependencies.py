"""
dependencies.py
---------------
FastAPI dependency injection functions.

Flow:
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. decode_access_token validates and parses the JWT (no DB round-trip).
  3. get_current_user loads the User the token was issued for and rejects it
     if it is gone, deactivated, or has moved to another company since.
  4. get_current_admin layers a role check on top of get_current_user.

get_store wraps the request's session in an EntityStore; every service is
built from it. get_powerbi_client hands out the client created at startup.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.logging import get_logger
from portal.core.security import decode_access_token
from portal.db.session import get_db
from portal.db.store import EntityStore
from portal.models.user import User, UserRole
from portal.services.powerbi_service import PowerBIClient

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> EntityStore:
    return EntityStore(db)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    store: Annotated[EntityStore, Depends(get_store)],
) -> User:
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    user_id = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION

    # Always re-verify against DB so deleted / deactivated users are rejected
    user = await store.find(User, user_id)
    if user is None or not user.is_active:
        logger.warning("User from valid JWT not found or inactive", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION
    if user.company_id != payload.get("company_id"):
        logger.warning("JWT company claim is stale", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION

    return user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if current_user.role != UserRole.admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def get_powerbi_client(request: Request) -> PowerBIClient:
    return request.app.state.powerbi


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
Store = Annotated[EntityStore, Depends(get_store)]
PowerBI = Annotated[PowerBIClient, Depends(get_powerbi_client)]

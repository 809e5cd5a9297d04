"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /auth/register  — Self-registration (unaffiliated 'user' account).
POST /auth/login     — Exchange credentials for a JWT access token (OAuth2 form).
GET  /auth/me        — Return the authenticated user's profile.
GET  /me/dashboards  — Active dashboards granted to the authenticated user.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from portal.core.config import settings
from portal.core.security import create_access_token
from portal.dependencies import CurrentUser, Store
from portal.schemas.dashboard import DashboardRead
from portal.schemas.user import TokenResponse, UserRead, UserRegister
from portal.services.grant_service import GrantService
from portal.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Authentication"])
me_router = APIRouter(prefix="/me", tags=["Authentication"])


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(body: UserRegister, store: Store) -> UserRead:
    """
    Create an account with the 'user' role and no company. An admin assigns
    the company and grants dashboards afterwards. A taken email is a 409.
    """
    user = await UserService(store).register_user(body)
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a JWT access token",
)
async def login(
    # The "username" field of the OAuth2 form carries the email address.
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    store: Store,
) -> TokenResponse:
    user = await UserService(store).authenticate(form_data.username, form_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(
        subject=user.id,
        company_id=user.company_id,
        role=user.role,
        expires_delta=expires,
    )

    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
        user=UserRead.model_validate(user),
    )


@router.get("/me", response_model=UserRead, summary="Get the currently authenticated user")
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@me_router.get(
    "/dashboards",
    response_model=list[DashboardRead],
    summary="Dashboards granted to the current user",
)
async def my_dashboards(current_user: CurrentUser, store: Store) -> list[DashboardRead]:
    dashboards = await GrantService(store).list_grants_for_user(current_user.id)
    return [DashboardRead.model_validate(d) for d in dashboards]

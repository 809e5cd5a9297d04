"""
api/routes/users.py
-------------------
User management. Admin only.

GET    /users                   — List users (filter by company, active, role).
GET    /users/{id}              — Fetch one user.
POST   /users                   — Create a user (any role, any company).
PUT    /users/{id}              — Partial update.
DELETE /users/{id}[?hard=1]     — Deactivate, or delete together with its grants.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from portal.dependencies import CurrentAdmin, Store
from portal.models.user import UserRole
from portal.schemas.common import DeleteResult
from portal.schemas.user import UserCreate, UserRead, UserUpdate
from portal.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=list[UserRead], summary="List users")
async def list_users(
    store: Store,
    admin: CurrentAdmin,
    company_id: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    role: Optional[UserRole] = Query(default=None),
) -> list[UserRead]:
    users = await UserService(store).list_users(
        company_id=company_id, is_active=is_active, role=role
    )
    return [UserRead.model_validate(u) for u in users]


@router.get("/{user_id}", response_model=UserRead, summary="Get a user")
async def get_user(user_id: str, store: Store, admin: CurrentAdmin) -> UserRead:
    return UserRead.model_validate(await UserService(store).get_user(user_id))


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(body: UserCreate, store: Store, admin: CurrentAdmin) -> UserRead:
    return UserRead.model_validate(await UserService(store).create_user(body))


@router.put("/{user_id}", response_model=UserRead, summary="Update a user")
async def update_user(
    user_id: str,
    body: UserUpdate,
    store: Store,
    admin: CurrentAdmin,
) -> UserRead:
    return UserRead.model_validate(await UserService(store).update_user(user_id, body))


@router.delete("/{user_id}", response_model=DeleteResult, summary="Delete a user")
async def delete_user(
    user_id: str,
    store: Store,
    admin: CurrentAdmin,
    hard: bool = Query(default=False),
) -> DeleteResult:
    service = UserService(store)
    if hard:
        grants = await service.hard_delete_user(user_id)
        return DeleteResult(id=user_id, hard=True, removed={"users": 1, "grants": grants})
    await service.deactivate_user(user_id)
    return DeleteResult(id=user_id, hard=False)

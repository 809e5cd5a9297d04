"""
api/routes/user_dashboards.py
-----------------------------
Grants between users and dashboards. Admin only.

GET    /user-dashboards                                   — All grants (filter by user / dashboard).
GET    /user-dashboards/user/{user_id}                    — Active dashboards granted to a user.
GET    /user-dashboards/dashboard/{dashboard_id}          — Active users granted a dashboard.
POST   /user-dashboards                                   — Grant one dashboard to one user.
DELETE /user-dashboards                                   — Revoke one grant.
POST   /user-dashboards/bulk                              — Many dashboards → one user.
POST   /user-dashboards/bulk/users                        — One dashboard → many users.
POST   /user-dashboards/companies/{company_id}/bulk       — Same, restricted to one company.
POST   /user-dashboards/companies/{company_id}/bulk/users — Same, restricted to one company.

Bulk endpoints answer 200 with a per-item report even when some items
errored; only a failed pre-check turns into an error response.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from portal.dependencies import CurrentAdmin, Store
from portal.schemas.dashboard import DashboardRead
from portal.schemas.grant import (
    BulkAssignmentReport,
    DashboardsToUserRequest,
    GrantCreate,
    GrantRead,
    GrantRemove,
    UsersToDashboardRequest,
)
from portal.schemas.user import UserRead
from portal.services.bulk_assignment_service import BulkAssignmentService
from portal.services.grant_service import GrantService

router = APIRouter(prefix="/user-dashboards", tags=["Grants"])


# ── Single grants ────────────────────────────────────────────────────────────

@router.get("", response_model=list[GrantRead], summary="List grants")
async def list_grants(
    store: Store,
    admin: CurrentAdmin,
    user_id: Optional[str] = Query(default=None),
    dashboard_id: Optional[str] = Query(default=None),
) -> list[GrantRead]:
    return await GrantService(store).list_grants(user_id=user_id, dashboard_id=dashboard_id)


@router.get(
    "/user/{user_id}",
    response_model=list[DashboardRead],
    summary="Active dashboards granted to a user",
)
async def dashboards_for_user(
    user_id: str, store: Store, admin: CurrentAdmin
) -> list[DashboardRead]:
    dashboards = await GrantService(store).list_grants_for_user(user_id)
    return [DashboardRead.model_validate(d) for d in dashboards]


@router.get(
    "/dashboard/{dashboard_id}",
    response_model=list[UserRead],
    summary="Active users granted a dashboard",
)
async def users_for_dashboard(
    dashboard_id: str, store: Store, admin: CurrentAdmin
) -> list[UserRead]:
    users = await GrantService(store).list_grants_for_dashboard(dashboard_id)
    return [UserRead.model_validate(u) for u in users]


@router.post(
    "",
    response_model=GrantRead,
    status_code=status.HTTP_201_CREATED,
    summary="Grant a dashboard to a user",
)
async def create_grant(body: GrantCreate, store: Store, admin: CurrentAdmin) -> GrantRead:
    return await GrantService(store).create_grant(body.user_id, body.dashboard_id)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a dashboard from a user",
)
async def remove_grant(body: GrantRemove, store: Store, admin: CurrentAdmin) -> None:
    await GrantService(store).remove_grant(body.user_id, body.dashboard_id)


# ── Bulk ─────────────────────────────────────────────────────────────────────

@router.post(
    "/bulk",
    response_model=BulkAssignmentReport,
    summary="Grant many dashboards to one user",
)
async def assign_dashboards_to_user(
    body: DashboardsToUserRequest, store: Store, admin: CurrentAdmin
) -> BulkAssignmentReport:
    return await BulkAssignmentService(store).assign_many_dashboards_to_user(
        body.user_id, body.dashboard_ids
    )


@router.post(
    "/bulk/users",
    response_model=BulkAssignmentReport,
    summary="Grant one dashboard to many users",
)
async def assign_dashboard_to_users(
    body: UsersToDashboardRequest, store: Store, admin: CurrentAdmin
) -> BulkAssignmentReport:
    return await BulkAssignmentService(store).assign_dashboard_to_many_users(
        body.dashboard_id, body.user_ids
    )


@router.post(
    "/companies/{company_id}/bulk",
    response_model=BulkAssignmentReport,
    summary="Grant many of a company's dashboards to one of its users",
)
async def assign_company_dashboards_to_user(
    company_id: str, body: DashboardsToUserRequest, store: Store, admin: CurrentAdmin
) -> BulkAssignmentReport:
    return await BulkAssignmentService(store).assign_company_dashboards_to_user(
        company_id, body.user_id, body.dashboard_ids
    )


@router.post(
    "/companies/{company_id}/bulk/users",
    response_model=BulkAssignmentReport,
    summary="Grant one of a company's dashboards to many of its users",
)
async def assign_dashboard_to_company_users(
    company_id: str, body: UsersToDashboardRequest, store: Store, admin: CurrentAdmin
) -> BulkAssignmentReport:
    return await BulkAssignmentService(store).assign_dashboard_to_company_users(
        company_id, body.dashboard_id, body.user_ids
    )

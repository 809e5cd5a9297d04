"""
api/routes/dashboards.py
------------------------
Dashboard management (admin) and embedding (any signed-in user).

GET    /dashboards                      — List dashboards (filter by company, active).
GET    /dashboards/{id}                 — Fetch one dashboard.
POST   /dashboards                      — Register a Power BI report as a dashboard.
PUT    /dashboards/{id}                 — Partial update.
DELETE /dashboards/{id}[?hard=1]        — Deactivate, or delete together with its grants.
GET    /dashboards/{id}/embed-token     — Embed token for a dashboard the caller may view.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from portal.core.errors import NotFoundError
from portal.core.logging import get_logger
from portal.dependencies import CurrentAdmin, CurrentUser, PowerBI, Store
from portal.models.user import UserRole
from portal.schemas.common import DeleteResult
from portal.schemas.dashboard import DashboardCreate, DashboardRead, DashboardUpdate
from portal.schemas.powerbi import EmbedToken, parse_access_level
from portal.services.dashboard_service import DashboardService
from portal.services.grant_service import GrantService

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboards", tags=["Dashboards"])


@router.get("", response_model=list[DashboardRead], summary="List dashboards")
async def list_dashboards(
    store: Store,
    admin: CurrentAdmin,
    company_id: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
) -> list[DashboardRead]:
    dashboards = await DashboardService(store).list_dashboards(
        company_id=company_id, is_active=is_active
    )
    return [DashboardRead.model_validate(d) for d in dashboards]


@router.get("/{dashboard_id}", response_model=DashboardRead, summary="Get a dashboard")
async def get_dashboard(dashboard_id: str, store: Store, admin: CurrentAdmin) -> DashboardRead:
    return DashboardRead.model_validate(await DashboardService(store).get_dashboard(dashboard_id))


@router.post(
    "",
    response_model=DashboardRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a dashboard",
)
async def create_dashboard(
    body: DashboardCreate, store: Store, admin: CurrentAdmin
) -> DashboardRead:
    return DashboardRead.model_validate(await DashboardService(store).create_dashboard(body))


@router.put("/{dashboard_id}", response_model=DashboardRead, summary="Update a dashboard")
async def update_dashboard(
    dashboard_id: str,
    body: DashboardUpdate,
    store: Store,
    admin: CurrentAdmin,
) -> DashboardRead:
    dashboard = await DashboardService(store).update_dashboard(dashboard_id, body)
    return DashboardRead.model_validate(dashboard)


@router.delete("/{dashboard_id}", response_model=DeleteResult, summary="Delete a dashboard")
async def delete_dashboard(
    dashboard_id: str,
    store: Store,
    admin: CurrentAdmin,
    hard: bool = Query(default=False),
) -> DeleteResult:
    service = DashboardService(store)
    if hard:
        grants = await service.hard_delete_dashboard(dashboard_id)
        return DeleteResult(
            id=dashboard_id, hard=True, removed={"dashboards": 1, "grants": grants}
        )
    await service.deactivate_dashboard(dashboard_id)
    return DeleteResult(id=dashboard_id, hard=False)


@router.get(
    "/{dashboard_id}/embed-token",
    response_model=EmbedToken,
    summary="Issue a Power BI embed token for a dashboard",
)
async def dashboard_embed_token(
    dashboard_id: str,
    store: Store,
    current_user: CurrentUser,
    powerbi: PowerBI,
    access_level: Optional[str] = Query(default=None, alias="accessLevel"),
) -> EmbedToken:
    """
    Users need a grant to the dashboard, and the dashboard must be active.
    Admins may embed any dashboard. Either way the owning company must be
    active.
    """
    dashboard = await DashboardService(store).get_dashboard(dashboard_id)
    grants = GrantService(store)

    if current_user.role != UserRole.admin.value:
        if not dashboard.is_active:
            raise NotFoundError("dashboard", dashboard_id)
        if not await grants.has_grant(current_user.id, dashboard_id):
            logger.warning(
                "Embed token refused: no grant",
                user_id=current_user.id,
                dashboard_id=dashboard_id,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this dashboard",
            )

    await grants.guard.ensure_active(dashboard.company_id)

    return await powerbi.issue_embed_token(
        dashboard.external_report_ref,
        parse_access_level(access_level),
        workspace_id=dashboard.external_workspace_ref,
    )

"""
services/dashboard_service.py
-----------------------------
Business logic for dashboard management.

A dashboard always belongs to exactly one existing company. Moving it to
another company is refused while users of a different company still hold
grants to it, so grants never end up spanning tenants.
"""

from typing import Optional

from sqlalchemy import select

from portal.core.audit import AuditLog, audit_log
from portal.core.errors import TenantMismatchError
from portal.core.logging import get_logger
from portal.db.store import EntityStore
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User
from portal.models.user_dashboard import UserDashboardGrant
from portal.schemas.common import changes_from
from portal.schemas.dashboard import DashboardCreate, DashboardUpdate

logger = get_logger(__name__)


class DashboardService:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._audit = audit or audit_log

    async def list_dashboards(
        self,
        company_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Dashboard]:
        criteria = []
        if company_id is not None:
            criteria.append(Dashboard.company_id == company_id)
        if is_active is not None:
            criteria.append(Dashboard.is_active == is_active)
        return await self._store.find_by(
            Dashboard, *criteria, order_by=[Dashboard.created_at.desc()]
        )

    async def get_dashboard(self, dashboard_id: str) -> Dashboard:
        return await self._store.get(Dashboard, dashboard_id)

    async def create_dashboard(self, data: DashboardCreate) -> Dashboard:
        await self._store.get(Company, data.company_id)
        dashboard = await self._store.create(Dashboard, **data.model_dump())
        logger.info(
            "Dashboard created",
            dashboard_id=dashboard.id,
            company_id=dashboard.company_id,
            report_ref=dashboard.external_report_ref,
        )
        return dashboard

    async def update_dashboard(self, dashboard_id: str, data: DashboardUpdate) -> Dashboard:
        dashboard = await self._store.get(Dashboard, dashboard_id)
        changes = changes_from(
            data,
            non_nullable=(
                "company_id",
                "name",
                "external_report_ref",
                "external_workspace_ref",
                "is_active",
            ),
        )

        new_company = changes.get("company_id")
        if new_company is not None and new_company != dashboard.company_id:
            await self._store.get(Company, new_company)
            foreign = await self._store.count(
                UserDashboardGrant,
                UserDashboardGrant.dashboard_id == dashboard_id,
                UserDashboardGrant.user_id.in_(
                    select(User.id).where(
                        User.company_id.is_not(None), User.company_id != new_company
                    )
                ),
            )
            if foreign:
                raise TenantMismatchError(
                    f"Dashboard '{dashboard_id}' is granted to {foreign} user(s) of "
                    f"another company; revoke them before moving it to '{new_company}'"
                )

        dashboard = await self._store.update(Dashboard, dashboard_id, changes)
        logger.info("Dashboard updated", dashboard_id=dashboard_id, fields=sorted(changes))
        return dashboard

    async def deactivate_dashboard(self, dashboard_id: str) -> Dashboard:
        """Soft delete. Grants stay; listings hide the dashboard while inactive."""
        dashboard = await self._store.update(Dashboard, dashboard_id, {"is_active": False})
        self._audit.emit("soft_delete", "dashboard", dashboard_id)
        return dashboard

    async def hard_delete_dashboard(self, dashboard_id: str) -> int:
        """Delete the dashboard and its grants. Returns the number of grants removed."""
        dashboard = await self._store.get(Dashboard, dashboard_id)
        grants = await self._store.count(
            UserDashboardGrant, UserDashboardGrant.dashboard_id == dashboard_id
        )
        self._audit.emit(
            "hard_delete",
            "dashboard",
            dashboard_id,
            company_id=dashboard.company_id,
            grants_removed=grants,
        )
        await self._store.delete_where(
            UserDashboardGrant, UserDashboardGrant.dashboard_id == dashboard_id
        )
        await self._store.delete(Dashboard, dashboard_id)
        return grants

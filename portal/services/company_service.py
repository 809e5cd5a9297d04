"""
services/company_service.py
---------------------------
Business logic for company (tenant) management.

Service layer is responsible for:
  - Constructing queries through the EntityStore
  - Enforcing business rules (existence, cascade ordering, audit)
  - Returning ORM records to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

from typing import Optional

from sqlalchemy import or_, select

from portal.core.audit import AuditLog, audit_log
from portal.core.logging import get_logger
from portal.db.store import EntityStore
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User
from portal.models.user_dashboard import UserDashboardGrant
from portal.schemas.common import changes_from
from portal.schemas.company import CompanyCreate, CompanyUpdate
from portal.services.tenant_guard import TenantLifecycleGuard

logger = get_logger(__name__)


class CompanyService:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._audit = audit or audit_log
        self._guard = TenantLifecycleGuard(store, self._audit)

    async def list_companies(self, is_active: Optional[bool] = None) -> list[Company]:
        criteria = [] if is_active is None else [Company.is_active == is_active]
        return await self._store.find_by(
            Company, *criteria, order_by=[Company.created_at.desc()]
        )

    async def get_company(self, company_id: str) -> Company:
        return await self._store.get(Company, company_id)

    async def create_company(self, data: CompanyCreate) -> Company:
        company = await self._store.create(Company, **data.model_dump())
        logger.info("Company created", company_id=company.id, name=company.name)
        return company

    async def update_company(self, company_id: str, data: CompanyUpdate) -> Company:
        changes = changes_from(data, non_nullable=("name", "is_active"))
        company = await self._store.update(Company, company_id, changes)
        logger.info("Company updated", company_id=company_id, fields=sorted(changes))
        return company

    async def deactivate_company(self, company_id: str) -> Company:
        """Soft delete. Users, dashboards and grants are left untouched."""
        company = await self._store.update(Company, company_id, {"is_active": False})
        self._audit.emit("soft_delete", "company", company_id)
        return company

    async def hard_delete_company(self, company_id: str) -> dict[str, int]:
        """
        Irreversibly delete a company with every user and dashboard it owns
        and all grants touching them. The audit event is written first.
        Returns the number of rows removed per kind.
        """
        company = await self._store.get(Company, company_id)
        impact = await self._guard.announce_cascade_delete(company)

        user_ids = select(User.id).where(User.company_id == company_id)
        dashboard_ids = select(Dashboard.id).where(Dashboard.company_id == company_id)

        # Grant FKs are RESTRICT: clear them before the owning rows go.
        await self._store.delete_where(
            UserDashboardGrant,
            or_(
                UserDashboardGrant.user_id.in_(user_ids),
                UserDashboardGrant.dashboard_id.in_(dashboard_ids),
            ),
        )
        await self._store.delete_where(User, User.company_id == company_id)
        await self._store.delete_where(Dashboard, Dashboard.company_id == company_id)
        await self._store.delete(Company, company_id)

        logger.warning("Company hard-deleted", company_id=company_id, **impact)
        return impact

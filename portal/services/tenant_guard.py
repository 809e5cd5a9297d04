"""
services/tenant_guard.py
------------------------
Tenant lifecycle rules shared by every assignment path.

  - An inactive company blocks all new grants for its dashboards and users.
    Callers check *before* writing anything, so a blocked call has no effect.
  - A company hard delete is announced to the audit log, with the number of
    users, dashboards and grants it is about to take with it, before the
    delete is issued.
  - Soft delete never touches grant rows; read paths filter on is_active.
"""

from typing import Iterable, Optional

from sqlalchemy import or_, select

from portal.core.audit import AuditLog, audit_log
from portal.core.errors import TenantInactiveError
from portal.core.logging import get_logger
from portal.db.store import EntityStore
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User
from portal.models.user_dashboard import UserDashboardGrant

logger = get_logger(__name__)


class TenantLifecycleGuard:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._audit = audit or audit_log

    async def ensure_active(self, company_id: Optional[str]) -> Optional[Company]:
        """
        Raise TenantInactiveError if the company exists and is inactive.
        None (unaffiliated user) passes. A dangling id also passes here;
        existence is the caller's NotFound concern.
        """
        if company_id is None:
            return None
        company = await self._store.find(Company, company_id)
        if company is not None and not company.is_active:
            logger.info("Assignment blocked by inactive company", company_id=company_id)
            raise TenantInactiveError(company_id)
        return company

    async def ensure_all_active(self, company_ids: Iterable[Optional[str]]) -> None:
        seen: set[str] = set()
        for company_id in company_ids:
            if company_id is None or company_id in seen:
                continue
            seen.add(company_id)
            await self.ensure_active(company_id)

    async def announce_cascade_delete(self, company: Company) -> dict[str, int]:
        """
        Count what a hard delete of ``company`` removes and write the audit
        event. Must run before the delete is issued.
        """
        user_ids = select(User.id).where(User.company_id == company.id)
        dashboard_ids = select(Dashboard.id).where(Dashboard.company_id == company.id)

        impact = {
            "users": await self._store.count(User, User.company_id == company.id),
            "dashboards": await self._store.count(
                Dashboard, Dashboard.company_id == company.id
            ),
            "grants": await self._store.count(
                UserDashboardGrant,
                or_(
                    UserDashboardGrant.user_id.in_(user_ids),
                    UserDashboardGrant.dashboard_id.in_(dashboard_ids),
                ),
            ),
        }
        self._audit.emit(
            "cascade_delete",
            "company",
            company.id,
            name=company.name,
            removes=impact,
            irreversible=True,
        )
        return impact

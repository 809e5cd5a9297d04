"""
services/grant_service.py
-------------------------
Access grants: which user may view which dashboard.

create_grant checks, in order, and stops at the first failure:

  1. user and dashboard exist                      → NotFoundError
  2. both company ids set and different            → TenantMismatchError
  3. the owning company is active                  → TenantInactiveError
  4. the pair is not already granted               → DuplicateGrantError

Step 4 is a read for the sake of a clear message. The composite primary key
is what actually decides: a concurrent insert of the same pair loses at the
database and comes back as DuplicateGrantError too.
"""

from typing import Optional

from sqlalchemy import select

from portal.core.audit import AuditLog, audit_log
from portal.core.errors import (
    ConflictError,
    DuplicateGrantError,
    NotFoundError,
    TenantMismatchError,
)
from portal.core.logging import get_logger
from portal.db.store import EntityStore
from portal.models.dashboard import Dashboard
from portal.models.user import User
from portal.models.user_dashboard import UserDashboardGrant
from portal.schemas.dashboard import DashboardSummary
from portal.schemas.grant import GrantRead
from portal.schemas.user import UserSummary
from portal.services.tenant_guard import TenantLifecycleGuard

logger = get_logger(__name__)


def _grant_read(grant: UserDashboardGrant, user: User, dashboard: Dashboard) -> GrantRead:
    return GrantRead(
        user_id=grant.user_id,
        dashboard_id=grant.dashboard_id,
        created_at=grant.created_at,
        user=UserSummary.model_validate(user),
        dashboard=DashboardSummary.model_validate(dashboard),
    )


class GrantService:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._audit = audit or audit_log
        self.guard = TenantLifecycleGuard(store, self._audit)

    # ── Single grant ─────────────────────────────────────────────────────────

    async def create_grant(self, user_id: str, dashboard_id: str) -> GrantRead:
        user = await self._store.get(User, user_id)
        dashboard = await self._store.get(Dashboard, dashboard_id)

        if user.company_id is not None and user.company_id != dashboard.company_id:
            raise TenantMismatchError(
                f"User '{user_id}' belongs to company '{user.company_id}' but dashboard "
                f"'{dashboard_id}' belongs to company '{dashboard.company_id}'",
                user_company_id=user.company_id,
                dashboard_company_id=dashboard.company_id,
            )

        await self.guard.ensure_active(dashboard.company_id)

        if await self._store.find(UserDashboardGrant, (user_id, dashboard_id)) is not None:
            raise DuplicateGrantError(user_id, dashboard_id)

        try:
            grant = await self._store.create(
                UserDashboardGrant, user_id=user_id, dashboard_id=dashboard_id
            )
        except ConflictError:
            # Lost a race: either the same pair was inserted meanwhile, or one
            # side was deleted. Only the first is a duplicate; the second
            # surfaces as NotFound for whichever side is gone.
            if await self._store.find(UserDashboardGrant, (user_id, dashboard_id)) is not None:
                raise DuplicateGrantError(user_id, dashboard_id) from None
            await self._store.get(User, user_id)
            await self._store.get(Dashboard, dashboard_id)
            raise

        logger.info(
            "Grant created",
            user_id=user_id,
            dashboard_id=dashboard_id,
            company_id=dashboard.company_id,
        )
        return _grant_read(grant, user, dashboard)

    async def remove_grant(self, user_id: str, dashboard_id: str) -> None:
        if await self._store.find(UserDashboardGrant, (user_id, dashboard_id)) is None:
            raise NotFoundError("grant", f"{user_id}/{dashboard_id}")
        self._audit.emit(
            "revoke", "grant", f"{user_id}/{dashboard_id}",
            user_id=user_id, dashboard_id=dashboard_id,
        )
        await self._store.delete(UserDashboardGrant, (user_id, dashboard_id))
        logger.info("Grant removed", user_id=user_id, dashboard_id=dashboard_id)

    async def has_grant(self, user_id: str, dashboard_id: str) -> bool:
        return await self._store.find(UserDashboardGrant, (user_id, dashboard_id)) is not None

    # ── Listings ─────────────────────────────────────────────────────────────

    async def list_grants_for_user(self, user_id: str) -> list[Dashboard]:
        """Active dashboards the user holds a grant to, by name."""
        await self._store.get(User, user_id)
        stmt = (
            select(Dashboard)
            .join(UserDashboardGrant, UserDashboardGrant.dashboard_id == Dashboard.id)
            .where(UserDashboardGrant.user_id == user_id, Dashboard.is_active.is_(True))
            .order_by(Dashboard.name)
        )
        return await self._store.select_all(stmt, "list dashboards for user")

    async def list_grants_for_dashboard(self, dashboard_id: str) -> list[User]:
        """Active users holding a grant to the dashboard, by email."""
        await self._store.get(Dashboard, dashboard_id)
        stmt = (
            select(User)
            .join(UserDashboardGrant, UserDashboardGrant.user_id == User.id)
            .where(UserDashboardGrant.dashboard_id == dashboard_id, User.is_active.is_(True))
            .order_by(User.email)
        )
        return await self._store.select_all(stmt, "list users for dashboard")

    async def list_grants(
        self,
        user_id: Optional[str] = None,
        dashboard_id: Optional[str] = None,
    ) -> list[GrantRead]:
        """Raw grant rows, regardless of active state, newest first."""
        stmt = (
            select(UserDashboardGrant, User, Dashboard)
            .join(User, User.id == UserDashboardGrant.user_id)
            .join(Dashboard, Dashboard.id == UserDashboardGrant.dashboard_id)
            .order_by(UserDashboardGrant.created_at.desc())
        )
        if user_id is not None:
            stmt = stmt.where(UserDashboardGrant.user_id == user_id)
        if dashboard_id is not None:
            stmt = stmt.where(UserDashboardGrant.dashboard_id == dashboard_id)

        rows = await self._store.select_rows(stmt, "list grants")
        return [_grant_read(grant, user, dashboard) for grant, user, dashboard in rows]

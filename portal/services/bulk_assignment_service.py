"""
services/bulk_assignment_service.py
-----------------------------------
Apply grant creation across many (user, dashboard) pairs in one request.

Every operation has two phases:

  Pre-check: the anchor (and, for company-scoped variants, the company and
             every supplied id) is validated up front. Any failure here
             aborts the whole call before a single grant is written.
  Iteration: ids are processed in the order supplied; each pair goes
             through GrantService.create_grant and is committed on its own.
             A duplicate is reported as skipped, any other domain error as
             errored, and neither stops the remaining items.

The returned BulkAssignmentReport lists one result per supplied id.
"""

from typing import Iterable, Optional, Sequence, Type, TypeVar

from portal.core.audit import AuditLog
from portal.core.errors import (
    DuplicateGrantError,
    NotFoundError,
    PortalError,
    StoreError,
    TenantMismatchError,
    ValidationError,
)
from portal.core.logging import get_logger
from portal.db.store import EntityStore
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User
from portal.schemas.grant import AssignmentOutcome, BulkAssignmentReport, BulkItemResult
from portal.services.grant_service import GrantService

logger = get_logger(__name__)

Member = TypeVar("Member", User, Dashboard)


class BulkAssignmentService:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._grants = GrantService(store, audit)
        self._guard = self._grants.guard

    # ── Unscoped ─────────────────────────────────────────────────────────────

    async def assign_many_dashboards_to_user(
        self, user_id: str, dashboard_ids: Sequence[str]
    ) -> BulkAssignmentReport:
        user = await self._active_anchor(User, user_id)
        await self._guard.ensure_active(user.company_id)

        resolved = await self._resolve(Dashboard, dashboard_ids)
        await self._guard.ensure_all_active(d.company_id for d in resolved.values())

        return await self._apply("dashboards_to_user", [(user_id, d) for d in dashboard_ids])

    async def assign_dashboard_to_many_users(
        self, dashboard_id: str, user_ids: Sequence[str]
    ) -> BulkAssignmentReport:
        dashboard = await self._active_anchor(Dashboard, dashboard_id)
        await self._guard.ensure_active(dashboard.company_id)

        return await self._apply("dashboard_to_users", [(u, dashboard_id) for u in user_ids])

    # ── Company-scoped ───────────────────────────────────────────────────────

    async def assign_company_dashboards_to_user(
        self, company_id: str, user_id: str, dashboard_ids: Sequence[str]
    ) -> BulkAssignmentReport:
        await self._active_company(company_id)
        await self._check_members(company_id, User, [user_id])
        await self._check_members(company_id, Dashboard, dashboard_ids)

        return await self._apply(
            "company_dashboards_to_user", [(user_id, d) for d in dashboard_ids]
        )

    async def assign_dashboard_to_company_users(
        self, company_id: str, dashboard_id: str, user_ids: Sequence[str]
    ) -> BulkAssignmentReport:
        await self._active_company(company_id)
        await self._check_members(company_id, Dashboard, [dashboard_id])
        await self._check_members(company_id, User, user_ids)

        return await self._apply(
            "dashboard_to_company_users", [(u, dashboard_id) for u in user_ids]
        )

    # ── Pre-checks ───────────────────────────────────────────────────────────

    async def _active_anchor(self, kind: Type[Member], entity_id: str) -> Member:
        entity = await self._store.get(kind, entity_id)
        if not entity.is_active:
            raise ValidationError(
                f"{kind.__name__} '{entity_id}' is inactive", entity_id=entity_id
            )
        return entity

    async def _active_company(self, company_id: str) -> Company:
        company = await self._store.get(Company, company_id)
        await self._guard.ensure_active(company_id)
        return company

    async def _resolve(
        self, kind: Type[Member], ids: Iterable[str]
    ) -> dict[str, Member]:
        unique = list(dict.fromkeys(ids))
        found = await self._store.find_by(kind, kind.id.in_(unique))
        return {entity.id: entity for entity in found}

    async def _check_members(
        self, company_id: str, kind: Type[Member], ids: Sequence[str]
    ) -> None:
        """Every id must resolve, belong to ``company_id`` and be active."""
        resolved = await self._resolve(kind, ids)
        label = kind.__name__.lower()
        for entity_id in ids:
            entity = resolved.get(entity_id)
            if entity is None:
                raise NotFoundError(label, entity_id)
            if entity.company_id != company_id:
                raise TenantMismatchError(
                    f"{kind.__name__} '{entity_id}' does not belong to company '{company_id}'",
                    entity_id=entity_id,
                    company_id=company_id,
                )
            if not entity.is_active:
                raise ValidationError(
                    f"{kind.__name__} '{entity_id}' is inactive", entity_id=entity_id
                )

    # ── Iteration ────────────────────────────────────────────────────────────

    async def _apply(
        self, operation: str, pairs: list[tuple[str, str]]
    ) -> BulkAssignmentReport:
        report = BulkAssignmentReport()

        for user_id, dashboard_id in pairs:
            report.record(await self._assign_one(user_id, dashboard_id))

        logger.info(
            "Bulk assignment finished",
            operation=operation,
            created=report.created,
            skipped=report.skipped,
            errored=report.errored,
        )
        return report

    async def _assign_one(self, user_id: str, dashboard_id: str) -> BulkItemResult:
        try:
            await self._grants.create_grant(user_id, dashboard_id)
            await self._store.commit()
        except DuplicateGrantError as exc:
            return BulkItemResult(
                user_id=user_id,
                dashboard_id=dashboard_id,
                outcome=AssignmentOutcome.skipped,
                detail=exc.message,
            )
        except PortalError as exc:
            if isinstance(exc, StoreError):
                await self._store.rollback()
            logger.info(
                "Bulk item failed", user_id=user_id, dashboard_id=dashboard_id, error=exc.kind
            )
            return BulkItemResult(
                user_id=user_id,
                dashboard_id=dashboard_id,
                outcome=AssignmentOutcome.errored,
                error=exc.kind,
                detail=exc.message,
            )

        return BulkItemResult(
            user_id=user_id, dashboard_id=dashboard_id, outcome=AssignmentOutcome.created
        )

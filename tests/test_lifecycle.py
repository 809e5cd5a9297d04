"""Tests for company, user and dashboard lifecycles: soft/hard delete, moves, audit."""

import pytest

from portal.core.audit import AuditLog
from portal.core.errors import ConflictError, NotFoundError, TenantMismatchError
from portal.models import Company, Dashboard, User, UserDashboardGrant
from portal.schemas.company import CompanyUpdate
from portal.schemas.dashboard import DashboardCreate, DashboardUpdate
from portal.schemas.user import UserCreate, UserUpdate
from portal.services.company_service import CompanyService
from portal.services.dashboard_service import DashboardService
from portal.services.user_service import UserService


class TestCompanyHardDelete:

    @pytest.mark.asyncio
    async def test_removes_users_dashboards_and_grants(self, store, audit, factory):
        acme = await factory.company("Acme")
        globex = await factory.company("Globex")
        users = [await factory.user(acme) for _ in range(2)]
        dashboards = [await factory.dashboard(acme) for _ in range(3)]
        freelancer = await factory.user(company=None)
        for user in users:
            await factory.grant(user, dashboards[0])
        await factory.grant(freelancer, dashboards[1])
        survivor = await factory.user(globex)
        survivor_dashboard = await factory.dashboard(globex)
        await factory.grant(survivor, survivor_dashboard)

        impact = await CompanyService(store, audit).hard_delete_company(acme.id)
        await store.commit()

        assert impact == {"users": 2, "dashboards": 3, "grants": 3}
        assert await store.find(Company, acme.id) is None
        assert await store.count(User, User.company_id == acme.id) == 0
        assert await store.count(Dashboard, Dashboard.company_id == acme.id) == 0
        assert await factory.grant_pairs() == {(survivor.id, survivor_dashboard.id)}
        assert await store.find(User, freelancer.id) is not None

    @pytest.mark.asyncio
    async def test_audit_event_is_emitted_before_any_row_is_deleted(
        self, store, factory, monkeypatch
    ):
        acme = await factory.company("Acme")
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await factory.grant(user, dashboard)

        timeline: list[str] = []
        real_delete_where = store.delete_where
        real_delete = store.delete

        async def delete_where(kind, *criteria):
            timeline.append(f"delete {kind.__name__}")
            return await real_delete_where(kind, *criteria)

        async def delete(kind, entity_id):
            timeline.append(f"delete {kind.__name__}")
            return await real_delete(kind, entity_id)

        monkeypatch.setattr(store, "delete_where", delete_where)
        monkeypatch.setattr(store, "delete", delete)

        events = []

        def sink(event):
            events.append(event)
            timeline.append(f"audit {event.operation}")

        await CompanyService(store, AuditLog(sink=sink)).hard_delete_company(acme.id)

        assert timeline[0] == "audit cascade_delete"
        assert "delete Company" in timeline
        event = events[0]
        assert (event.entity_kind, event.entity_id) == ("company", acme.id)
        assert event.detail["removes"] == {"users": 1, "dashboards": 1, "grants": 1}
        assert event.detail["irreversible"] is True

    @pytest.mark.asyncio
    async def test_unknown_company_is_not_found(self, store, audit, audit_events):
        with pytest.raises(NotFoundError):
            await CompanyService(store, audit).hard_delete_company("missing")

        assert audit_events == []


class TestSoftDelete:

    @pytest.mark.asyncio
    async def test_company_deactivation_leaves_dependants_untouched(
        self, store, audit, audit_events, factory
    ):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await factory.grant(user, dashboard)

        company = await CompanyService(store, audit).deactivate_company(acme.id)

        assert company.is_active is False
        assert (await store.get(User, user.id)).is_active is True
        assert (await store.get(Dashboard, dashboard.id)).is_active is True
        assert await factory.grant_pairs() == {(user.id, dashboard.id)}
        assert [e.operation for e in audit_events] == ["soft_delete"]

    @pytest.mark.asyncio
    async def test_dashboard_deactivation_keeps_grants(self, store, audit, factory):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await factory.grant(user, dashboard)

        await DashboardService(store, audit).deactivate_dashboard(dashboard.id)

        assert await factory.grant_pairs() == {(user.id, dashboard.id)}


class TestCompanyService:

    @pytest.mark.asyncio
    async def test_update_ignores_null_for_required_fields(self, store, factory):
        acme = await factory.company("Acme")

        company = await CompanyService(store).update_company(
            acme.id, CompanyUpdate(name=None, industry="Retail")
        )

        assert company.name == "Acme"
        assert company.industry == "Retail"

    @pytest.mark.asyncio
    async def test_list_filters_on_active(self, store, factory):
        await factory.company("Acme")
        retired = await factory.company("Retired", is_active=False)

        inactive = await CompanyService(store).list_companies(is_active=False)

        assert [c.id for c in inactive] == [retired.id]


class TestUserService:

    @pytest.mark.asyncio
    async def test_email_is_unique_case_insensitively(self, store, factory):
        await factory.user(email="jane@example.com")

        with pytest.raises(ConflictError):
            await UserService(store).create_user(
                UserCreate(email="Jane@Example.com", password="password123")
            )

    @pytest.mark.asyncio
    async def test_unknown_company_is_not_found(self, store):
        with pytest.raises(NotFoundError):
            await UserService(store).create_user(
                UserCreate(email="jane@example.com", password="password123", company_id="nope")
            )

    @pytest.mark.asyncio
    async def test_password_change_is_rehashed(self, store, factory):
        user = await factory.user()
        service = UserService(store)

        await service.update_user(user.id, UserUpdate(password="new-password"))

        assert await service.authenticate(user.email, "new-password") is not None
        assert await service.authenticate(user.email, "password123") is None

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_authenticate(self, store, factory):
        user = await factory.user(is_active=False)

        assert await UserService(store).authenticate(user.email, "password123") is None

    @pytest.mark.asyncio
    async def test_move_refused_while_holding_foreign_grants(self, store, factory):
        acme = await factory.company()
        globex = await factory.company()
        user = await factory.user(company=None)
        await factory.grant(user, await factory.dashboard(acme))

        with pytest.raises(TenantMismatchError):
            await UserService(store).update_user(user.id, UserUpdate(company_id=globex.id))

    @pytest.mark.asyncio
    async def test_move_allowed_into_granted_company(self, store, factory):
        acme = await factory.company()
        user = await factory.user(company=None)
        await factory.grant(user, await factory.dashboard(acme))

        moved = await UserService(store).update_user(user.id, UserUpdate(company_id=acme.id))

        assert moved.company_id == acme.id

    @pytest.mark.asyncio
    async def test_hard_delete_removes_grants_and_audits(
        self, store, audit, audit_events, factory
    ):
        acme = await factory.company()
        user = await factory.user(acme)
        await factory.grant(user, await factory.dashboard(acme))
        await factory.grant(user, await factory.dashboard(acme))

        removed = await UserService(store, audit).hard_delete_user(user.id)

        assert removed == 2
        assert await store.find(User, user.id) is None
        assert await store.count(UserDashboardGrant) == 0
        assert audit_events[0].operation == "hard_delete"
        assert audit_events[0].detail["grants_removed"] == 2


class TestDashboardService:

    @pytest.mark.asyncio
    async def test_create_requires_existing_company(self, store):
        with pytest.raises(NotFoundError):
            await DashboardService(store).create_dashboard(
                DashboardCreate(
                    company_id="missing",
                    name="Sales",
                    external_report_ref="r-1",
                    external_workspace_ref="w-1",
                )
            )

    @pytest.mark.asyncio
    async def test_move_refused_while_granted_to_other_company_users(self, store, factory):
        acme = await factory.company()
        globex = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await factory.grant(user, dashboard)

        with pytest.raises(TenantMismatchError):
            await DashboardService(store).update_dashboard(
                dashboard.id, DashboardUpdate(company_id=globex.id)
            )

    @pytest.mark.asyncio
    async def test_hard_delete_removes_grants(self, store, audit, audit_events, factory):
        acme = await factory.company()
        dashboard = await factory.dashboard(acme)
        await factory.grant(await factory.user(acme), dashboard)

        removed = await DashboardService(store, audit).hard_delete_dashboard(dashboard.id)

        assert removed == 1
        assert await store.find(Dashboard, dashboard.id) is None
        assert [e.entity_kind for e in audit_events] == ["dashboard"]

"""Tests for GrantService: single grants and grant listings."""

import pytest

from conftest import race_grant_insert, race_user_delete
from portal.core.errors import (
    ConflictError,
    DuplicateGrantError,
    NotFoundError,
    TenantInactiveError,
    TenantMismatchError,
)
from portal.services.grant_service import GrantService


@pytest.fixture
def grants(store, audit) -> GrantService:
    return GrantService(store, audit)


class TestCreateGrant:

    @pytest.mark.asyncio
    async def test_returns_grant_with_summaries(self, grants, factory):
        acme = await factory.company("Acme")
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)

        grant = await grants.create_grant(user.id, dashboard.id)

        assert grant.user_id == user.id
        assert grant.dashboard_id == dashboard.id
        assert grant.user.email == user.email
        assert grant.dashboard.name == dashboard.name
        assert await factory.grant_pairs() == {(user.id, dashboard.id)}

    @pytest.mark.asyncio
    async def test_second_identical_grant_is_conflict_and_changes_nothing(
        self, grants, factory
    ):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await grants.create_grant(user.id, dashboard.id)
        before = await factory.grant_pairs()

        with pytest.raises(ConflictError) as excinfo:
            await grants.create_grant(user.id, dashboard.id)

        assert isinstance(excinfo.value, DuplicateGrantError)
        assert excinfo.value.kind == "conflict"
        assert await factory.grant_pairs() == before

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, grants, factory):
        dashboard = await factory.dashboard(await factory.company())

        with pytest.raises(NotFoundError) as excinfo:
            await grants.create_grant("missing", dashboard.id)

        assert excinfo.value.entity_kind == "user"

    @pytest.mark.asyncio
    async def test_unknown_dashboard_is_not_found(self, grants, factory):
        user = await factory.user()

        with pytest.raises(NotFoundError) as excinfo:
            await grants.create_grant(user.id, "missing")

        assert excinfo.value.entity_kind == "dashboard"

    @pytest.mark.asyncio
    async def test_concurrent_identical_insert_is_duplicate(
        self, grants, store, factory, monkeypatch
    ):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        race_grant_insert(store, monkeypatch)

        with pytest.raises(DuplicateGrantError):
            await grants.create_grant(user.id, dashboard.id)

        assert await factory.grant_pairs() == {(user.id, dashboard.id)}

    @pytest.mark.asyncio
    async def test_user_deleted_before_insert_is_not_found(
        self, grants, store, factory, monkeypatch
    ):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        race_user_delete(store, monkeypatch)

        with pytest.raises(NotFoundError) as excinfo:
            await grants.create_grant(user.id, dashboard.id)

        assert excinfo.value.kind == "not_found"
        assert excinfo.value.entity_kind == "user"
        assert await factory.grant_pairs() == set()

    @pytest.mark.asyncio
    async def test_cross_tenant_grant_is_refused_and_not_persisted(self, grants, factory):
        acme = await factory.company("Acme")
        globex = await factory.company("Globex")
        user = await factory.user(acme)
        dashboard = await factory.dashboard(globex)

        with pytest.raises(TenantMismatchError):
            await grants.create_grant(user.id, dashboard.id)

        assert await factory.grant_pairs() == set()

    @pytest.mark.asyncio
    async def test_unaffiliated_user_may_be_granted_any_company(self, grants, factory):
        user = await factory.user(company=None)
        dashboard = await factory.dashboard(await factory.company())

        await grants.create_grant(user.id, dashboard.id)

        assert await factory.grant_pairs() == {(user.id, dashboard.id)}

    @pytest.mark.asyncio
    async def test_inactive_company_blocks_grant(self, grants, factory):
        acme = await factory.company(is_active=False)
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)

        with pytest.raises(TenantInactiveError) as excinfo:
            await grants.create_grant(user.id, dashboard.id)

        assert excinfo.value.company_id == acme.id
        assert await factory.grant_pairs() == set()

    @pytest.mark.asyncio
    async def test_not_found_wins_over_other_failures(self, grants, factory):
        inactive = await factory.company(is_active=False)
        user = await factory.user(inactive)

        with pytest.raises(NotFoundError):
            await grants.create_grant(user.id, "missing")


class TestRemoveGrant:

    @pytest.mark.asyncio
    async def test_removes_grant_and_audits(self, grants, factory, audit_events):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)
        await factory.grant(user, dashboard)

        await grants.remove_grant(user.id, dashboard.id)

        assert await factory.grant_pairs() == set()
        assert [(e.operation, e.entity_kind) for e in audit_events] == [("revoke", "grant")]
        assert audit_events[0].entity_id == f"{user.id}/{dashboard.id}"

    @pytest.mark.asyncio
    async def test_missing_grant_is_not_found(self, grants, factory, audit_events):
        acme = await factory.company()
        user = await factory.user(acme)
        dashboard = await factory.dashboard(acme)

        with pytest.raises(NotFoundError):
            await grants.remove_grant(user.id, dashboard.id)

        assert audit_events == []


class TestListings:

    @pytest.mark.asyncio
    async def test_deactivated_dashboard_is_hidden_until_reactivated(self, grants, factory):
        acme = await factory.company()
        user = await factory.user(acme)
        sales = await factory.dashboard(acme)
        ops = await factory.dashboard(acme)
        await factory.grant(user, sales)
        await factory.grant(user, ops)

        await factory.set_active(sales, False)
        visible = await grants.list_grants_for_user(user.id)

        assert [d.id for d in visible] == [ops.id]
        # The grant row itself survives the soft delete
        assert (user.id, sales.id) in await factory.grant_pairs()

        await factory.set_active(sales, True)
        visible = await grants.list_grants_for_user(user.id)

        assert {d.id for d in visible} == {sales.id, ops.id}

    @pytest.mark.asyncio
    async def test_dashboard_listing_hides_inactive_users(self, grants, factory):
        acme = await factory.company()
        alice = await factory.user(acme)
        bob = await factory.user(acme, is_active=False)
        dashboard = await factory.dashboard(acme)
        await factory.grant(alice, dashboard)
        await factory.grant(bob, dashboard)

        users = await grants.list_grants_for_dashboard(dashboard.id)

        assert [u.id for u in users] == [alice.id]

    @pytest.mark.asyncio
    async def test_unknown_anchor_is_not_found(self, grants):
        with pytest.raises(NotFoundError):
            await grants.list_grants_for_user("missing")
        with pytest.raises(NotFoundError):
            await grants.list_grants_for_dashboard("missing")

    @pytest.mark.asyncio
    async def test_list_grants_filters_and_includes_inactive(self, grants, factory):
        acme = await factory.company()
        alice = await factory.user(acme)
        bob = await factory.user(acme)
        dashboard = await factory.dashboard(acme, is_active=False)
        await factory.grant(alice, dashboard)
        await factory.grant(bob, dashboard)

        everything = await grants.list_grants()
        only_alice = await grants.list_grants(user_id=alice.id)

        assert len(everything) == 2
        assert [(g.user_id, g.dashboard_id) for g in only_alice] == [(alice.id, dashboard.id)]
        assert only_alice[0].user.email == alice.email

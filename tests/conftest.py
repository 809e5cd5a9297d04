import os
from pathlib import Path

# Set test environment before importing the app
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-32chars!"  # noqa: S105
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_portal.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AZURE_CLIENT_ID"] = ""
os.environ["AZURE_CLIENT_SECRET"] = ""
os.environ["AZURE_TENANT_ID"] = ""
os.environ["POWERBI_WORKSPACE_ID"] = ""

from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert

from main import app
from portal.core.audit import AuditEvent, AuditLog
from portal.core.security import create_access_token, hash_password
from portal.db.session import AsyncSessionLocal, engine
from portal.db.store import EntityStore
from portal.dependencies import get_powerbi_client
from portal.models import Base, Company, Dashboard, User, UserDashboardGrant
from portal.schemas.powerbi import AccessLevel, EmbedToken

TEST_PASSWORD = "password123"


@pytest.fixture(scope="session", autouse=True)
def _remove_test_database():
    yield
    Path("test_portal.db").unlink(missing_ok=True)


@pytest_asyncio.fixture
async def session():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db_session:
        yield db_session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
def store(session) -> EntityStore:
    return EntityStore(session)


@pytest.fixture
def audit_events() -> list[AuditEvent]:
    return []


@pytest.fixture
def audit(audit_events) -> AuditLog:
    return AuditLog(sink=audit_events.append)


class Factory:
    """Creates committed rows so API requests on other sessions can see them."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def company(self, name: Optional[str] = None, is_active: bool = True) -> Company:
        company = await self.store.create(
            Company, name=name or f"Company {self._next()}", is_active=is_active
        )
        await self.store.commit()
        return company

    async def user(
        self,
        company: Optional[Company] = None,
        email: Optional[str] = None,
        role: str = "user",
        is_active: bool = True,
    ) -> User:
        n = self._next()
        user = await self.store.create(
            User,
            email=email or f"user{n}@example.com",
            name=f"User {n}",
            hashed_password=hash_password(TEST_PASSWORD),
            company_id=company.id if company else None,
            role=role,
            is_active=is_active,
        )
        await self.store.commit()
        return user

    async def dashboard(self, company: Company, is_active: bool = True) -> Dashboard:
        n = self._next()
        dashboard = await self.store.create(
            Dashboard,
            company_id=company.id,
            name=f"Dashboard {n}",
            external_report_ref=f"report-{n}",
            external_workspace_ref=f"workspace-{n}",
            is_active=is_active,
        )
        await self.store.commit()
        return dashboard

    async def grant(self, user: User, dashboard: Dashboard) -> UserDashboardGrant:
        grant = await self.store.create(
            UserDashboardGrant, user_id=user.id, dashboard_id=dashboard.id
        )
        await self.store.commit()
        return grant

    async def set_active(self, entity, is_active: bool) -> None:
        await self.store.update(type(entity), entity.id, {"is_active": is_active})
        await self.store.commit()

    async def grant_pairs(self) -> set[tuple[str, str]]:
        grants = await self.store.find_by(UserDashboardGrant)
        await self.store.commit()
        return {(g.user_id, g.dashboard_id) for g in grants}


@pytest.fixture
def factory(store) -> Factory:
    return Factory(store)


# ── API ──────────────────────────────────────────────────────────────────────

class FakePowerBI:
    """Stands in for PowerBIClient in route tests."""

    def __init__(self) -> None:
        self.embed_calls: list[tuple[str, AccessLevel, Optional[str]]] = []

    def is_configured(self) -> bool:
        return True

    async def issue_embed_token(
        self,
        report_id: str,
        access_level: AccessLevel = AccessLevel.view,
        workspace_id: Optional[str] = None,
    ) -> EmbedToken:
        self.embed_calls.append((report_id, access_level, workspace_id))
        return EmbedToken(
            embed_url=f"https://app.powerbi.com/reportEmbed?reportId={report_id}",
            access_token="embed-token",
            embed_id=report_id,
        )


@pytest.fixture
def fake_powerbi() -> FakePowerBI:
    return FakePowerBI()


@pytest_asyncio.fixture
async def client(session, fake_powerbi):
    app.dependency_overrides[get_powerbi_client] = lambda: fake_powerbi
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(subject=user.id, company_id=user.company_id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin(factory) -> User:
    return await factory.user(email="admin@example.com", role="admin")


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)


# ── Races ────────────────────────────────────────────────────────────────────

def race_grant_insert(store: EntityStore, monkeypatch) -> None:
    """First grant lookup misses while another writer inserts that same row."""
    real_find = store.find
    raced = []

    async def find(kind, entity_id):
        if kind is UserDashboardGrant and not raced:
            raced.append(entity_id)
            user_id, dashboard_id = entity_id
            await store.session.execute(
                insert(UserDashboardGrant).values(user_id=user_id, dashboard_id=dashboard_id)
            )
            return None
        return await real_find(kind, entity_id)

    monkeypatch.setattr(store, "find", find)


def race_user_delete(store: EntityStore, monkeypatch) -> None:
    """The user disappears between the grant checks and the insert."""
    real_create = store.create

    async def create(kind, **attrs):
        if kind is UserDashboardGrant:
            await store.delete_where(User, User.id == attrs["user_id"])
        return await real_create(kind, **attrs)

    monkeypatch.setattr(store, "create", create)

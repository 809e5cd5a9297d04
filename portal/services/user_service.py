"""
services/user_service.py
------------------------
Business logic for user management, registration and authentication.

Emails are stored lower-cased and are unique across all companies. A
duplicate is rejected up front with a readable message; the unique index
remains the final authority for concurrent inserts (→ ConflictError).
"""

from typing import Optional

from sqlalchemy import select

from portal.core.audit import AuditLog, audit_log
from portal.core.errors import ConflictError, TenantMismatchError
from portal.core.logging import get_logger
from portal.core.security import hash_password, verify_password
from portal.db.store import EntityStore
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User, UserRole
from portal.models.user_dashboard import UserDashboardGrant
from portal.schemas.common import changes_from
from portal.schemas.user import UserCreate, UserRegister, UserUpdate

logger = get_logger(__name__)


class UserService:

    def __init__(self, store: EntityStore, audit: Optional[AuditLog] = None) -> None:
        self._store = store
        self._audit = audit or audit_log

    # ── Queries ──────────────────────────────────────────────────────────────

    async def list_users(
        self,
        company_id: Optional[str] = None,
        is_active: Optional[bool] = None,
        role: Optional[UserRole] = None,
    ) -> list[User]:
        criteria = []
        if company_id is not None:
            criteria.append(User.company_id == company_id)
        if is_active is not None:
            criteria.append(User.is_active == is_active)
        if role is not None:
            criteria.append(User.role == role.value)
        return await self._store.find_by(User, *criteria, order_by=[User.created_at.desc()])

    async def get_user(self, user_id: str) -> User:
        return await self._store.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        users = await self._store.find_by(User, User.email == email.lower())
        return users[0] if users else None

    # ── Mutations ────────────────────────────────────────────────────────────

    async def create_user(self, data: UserCreate) -> User:
        email = data.email.lower()
        await self._ensure_email_free(email)
        if data.company_id is not None:
            await self._store.get(Company, data.company_id)

        user = await self._store.create(
            User,
            email=email,
            hashed_password=hash_password(data.password),
            name=data.name,
            company_id=data.company_id,
            role=data.role.value,
            is_active=data.is_active,
        )
        logger.info("User created", user_id=user.id, company_id=user.company_id, role=user.role)
        return user

    async def register_user(self, data: UserRegister) -> User:
        """Self-registration: an unaffiliated account with the 'user' role."""
        return await self.create_user(
            UserCreate(email=data.email, password=data.password, name=data.name)
        )

    async def update_user(self, user_id: str, data: UserUpdate) -> User:
        user = await self._store.get(User, user_id)
        changes = changes_from(data, non_nullable=("email", "password", "role", "is_active"))

        if "email" in changes:
            changes["email"] = changes["email"].lower()
            if changes["email"] != user.email:
                await self._ensure_email_free(changes["email"])
        if "password" in changes:
            changes["hashed_password"] = hash_password(changes.pop("password"))
        if "role" in changes:
            changes["role"] = UserRole(changes["role"]).value
        if "company_id" in changes and changes["company_id"] != user.company_id:
            if changes["company_id"] is not None:
                await self._store.get(Company, changes["company_id"])
                await self._ensure_grants_within(user_id, changes["company_id"])

        user = await self._store.update(User, user_id, changes)
        logger.info("User updated", user_id=user_id, fields=sorted(changes))
        return user

    async def deactivate_user(self, user_id: str) -> User:
        """Soft delete. Grants stay; listings hide the user while inactive."""
        user = await self._store.update(User, user_id, {"is_active": False})
        self._audit.emit("soft_delete", "user", user_id)
        return user

    async def hard_delete_user(self, user_id: str) -> int:
        """Delete the user and its grants. Returns the number of grants removed."""
        user = await self._store.get(User, user_id)
        grants = await self._store.count(
            UserDashboardGrant, UserDashboardGrant.user_id == user_id
        )
        self._audit.emit(
            "hard_delete", "user", user_id, email=user.email, grants_removed=grants
        )
        await self._store.delete_where(
            UserDashboardGrant, UserDashboardGrant.user_id == user_id
        )
        await self._store.delete(User, user_id)
        return grants

    # ── Authentication ───────────────────────────────────────────────────────

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """
        Verify credentials and return the User if valid and active, else None.
        Email lookup is case-insensitive.
        """
        user = await self.get_by_email(email)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _ensure_email_free(self, email: str) -> None:
        if await self.get_by_email(email) is not None:
            raise ConflictError(f"Email '{email}' is already registered")

    async def _ensure_grants_within(self, user_id: str, company_id: str) -> None:
        foreign = await self._store.count(
            UserDashboardGrant,
            UserDashboardGrant.user_id == user_id,
            UserDashboardGrant.dashboard_id.in_(
                select(Dashboard.id).where(Dashboard.company_id != company_id)
            ),
        )
        if foreign:
            raise TenantMismatchError(
                f"User '{user_id}' holds {foreign} grant(s) to dashboards of another "
                f"company; revoke them before moving the user to '{company_id}'"
            )

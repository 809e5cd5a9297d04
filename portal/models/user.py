"""
models/user.py
--------------
User record with role and optional company binding.

Role design:
  - 'admin': manages companies, users, dashboards and grants.
  - 'user':  views the dashboards granted to them.

company_id is nullable: an unaffiliated user may be granted dashboards of
any company. hashed_password stores bcrypt hashes only and is never
serialised.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class UserRole(str, PyEnum):
    admin = "admin"
    user = "user"


class User(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "user"
    __entity_name__ = "user"

    company_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(
        String(120), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.user.value
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"

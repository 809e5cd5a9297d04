"""
models/company.py
-----------------
Company (tenant) record.

A company scopes users and dashboards. Soft delete flips is_active and
blocks new assignments; hard delete removes the row and, through the
ON DELETE CASCADE foreign keys on users/dashboards, everything it owns.
"""

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class Company(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "company"
    __entity_name__ = "company"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name} active={self.is_active}>"

"""
models/dashboard.py
-------------------
Dashboard record: a Power BI report published to one company.

external_report_ref / external_workspace_ref are opaque ids owned by the
BI service; they are only checked for presence.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class Dashboard(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "dashboard"
    __entity_name__ = "dashboard"

    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_report_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    external_workspace_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    def __repr__(self) -> str:
        return f"<Dashboard id={self.id} name={self.name} company_id={self.company_id}>"

"""
models/user_dashboard.py
------------------------
UserDashboardGrant: "this user may view this dashboard".

The composite primary key is the uniqueness authority for grants; a second
insert of the same pair fails at the database and surfaces as a Conflict.
Both foreign keys are RESTRICT: the service layer removes a user's or a
dashboard's grants before deleting it, so a grant can never dangle.
"""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base, CreatedAtMixin


class UserDashboardGrant(CreatedAtMixin, Base):
    __tablename__ = "user_dashboard"
    __entity_name__ = "grant"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    dashboard_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dashboard.id", ondelete="RESTRICT"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<UserDashboardGrant user_id={self.user_id} dashboard_id={self.dashboard_id}>"

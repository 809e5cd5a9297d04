"""
models/__init__.py
------------------
Re-export all models so create_tables.py (and Alembic, if added) can
discover every table via a single import:

    from portal.models import Base
"""

from portal.db.base import Base
from portal.models.company import Company
from portal.models.dashboard import Dashboard
from portal.models.user import User, UserRole
from portal.models.user_dashboard import UserDashboardGrant

__all__ = ["Base", "Company", "Dashboard", "User", "UserDashboardGrant", "UserRole"]

"""
db/base.py
----------
Declarative base and shared column helpers.

Models here are plain records: columns and foreign keys only. Behaviour
(create, update, delete, grant checks) lives in the service layer, and
cross-table lookups are explicit queries rather than ORM relationship
attributes.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def generate_uuid() -> str:
    return str(uuid.uuid4())


class UUIDPrimaryKeyMixin:
    """String UUID primary key; opaque ids avoid tenant enumeration."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

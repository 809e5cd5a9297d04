"""
schemas/grant.py
----------------
Pydantic models for user ↔ dashboard grants and bulk assignment reports.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from portal.schemas.dashboard import DashboardSummary
from portal.schemas.user import UserSummary


class GrantCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    dashboard_id: str = Field(..., min_length=1)


class GrantRemove(GrantCreate):
    pass


class GrantRead(BaseModel):
    user_id: str
    dashboard_id: str
    created_at: datetime
    user: Optional[UserSummary] = None
    dashboard: Optional[DashboardSummary] = None


# ── Bulk assignment ──────────────────────────────────────────────────────────

class DashboardsToUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    dashboard_ids: list[str] = Field(..., min_length=1, max_length=500)


class UsersToDashboardRequest(BaseModel):
    dashboard_id: str = Field(..., min_length=1)
    user_ids: list[str] = Field(..., min_length=1, max_length=500)


class AssignmentOutcome(str, Enum):
    created = "created"
    skipped = "skipped"
    errored = "errored"


class BulkItemResult(BaseModel):
    """Outcome for one (user, dashboard) pair of a bulk call."""
    user_id: str
    dashboard_id: str
    outcome: AssignmentOutcome
    error: Optional[str] = None  # error kind, e.g. "not_found", "store_error"
    detail: Optional[str] = None


class BulkAssignmentReport(BaseModel):
    created: int = 0
    skipped: int = 0
    errored: int = 0
    # Per-item results in the order the ids were supplied
    items: list[BulkItemResult] = Field(default_factory=list)

    def record(self, item: BulkItemResult) -> None:
        self.items.append(item)
        if item.outcome is AssignmentOutcome.created:
            self.created += 1
        elif item.outcome is AssignmentOutcome.skipped:
            self.skipped += 1
        else:
            self.errored += 1

    def _of(self, outcome: AssignmentOutcome) -> list[BulkItemResult]:
        return [item for item in self.items if item.outcome is outcome]

    @computed_field
    @property
    def created_items(self) -> list[BulkItemResult]:
        return self._of(AssignmentOutcome.created)

    @computed_field
    @property
    def skipped_items(self) -> list[BulkItemResult]:
        return self._of(AssignmentOutcome.skipped)

    @computed_field
    @property
    def errored_items(self) -> list[BulkItemResult]:
        return self._of(AssignmentOutcome.errored)

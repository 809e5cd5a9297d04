"""
schemas/dashboard.py
--------------------
Pydantic models for Dashboard.

external_report_ref / external_workspace_ref are opaque Power BI ids; the
only rule is that they are present and non-blank.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


Name = Annotated[str, Field(min_length=1, max_length=100), AfterValidator(_not_blank)]
ExternalRef = Annotated[str, Field(min_length=1, max_length=100), AfterValidator(_not_blank)]


class DashboardCreate(BaseModel):
    company_id: str
    name: Name = Field(..., examples=["Sales overview"])
    description: Optional[str] = None
    external_report_ref: ExternalRef
    external_workspace_ref: ExternalRef
    is_active: bool = True


class DashboardUpdate(BaseModel):
    company_id: Optional[str] = None
    name: Optional[Name] = None
    description: Optional[str] = None
    external_report_ref: Optional[ExternalRef] = None
    external_workspace_ref: Optional[ExternalRef] = None
    is_active: Optional[bool] = None


class DashboardRead(BaseModel):
    id: str
    company_id: str
    name: str
    description: Optional[str]
    external_report_ref: str
    external_workspace_ref: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class DashboardSummary(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}

"""
schemas/powerbi.py
------------------
Shapes returned by the Power BI client and exposed through /powerbi routes.
Field names follow the Power BI REST API, snake_cased.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AccessLevel(str, Enum):
    view = "View"
    edit = "Edit"


class Workspace(BaseModel):
    id: str
    name: str
    is_read_only: Optional[bool] = None
    is_on_dedicated_capacity: Optional[bool] = None
    type: Optional[str] = None


class Report(BaseModel):
    id: str
    name: str
    embed_url: Optional[str] = None
    web_url: Optional[str] = None
    workspace_id: str
    dataset_id: Optional[str] = None


class EmbedToken(BaseModel):
    embed_url: Optional[str]
    access_token: str
    embed_id: str
    expiration: Optional[datetime] = None
    token_type: str = "Bearer"


class WorkspaceReports(BaseModel):
    workspace: Workspace
    reports: list[Report]


def parse_access_level(value: Optional[str]) -> AccessLevel:
    """Unknown or missing access levels fall back to View."""
    try:
        return AccessLevel(value)
    except ValueError:
        return AccessLevel.view

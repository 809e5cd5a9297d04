"""
schemas/company.py
------------------
Pydantic request/response models for Company.

Naming convention:
  CompanyCreate  → inbound request body
  CompanyUpdate  → partial update; only fields that were sent are applied
  CompanyRead    → outbound response body
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CompanyCreate(BaseModel):
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        examples=["Acme Corp"],
    )
    industry: Optional[str] = Field(default=None, max_length=255, examples=["Retail"])
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    industry: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CompanyRead(BaseModel):
    id: str
    name: str
    industry: Optional[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}

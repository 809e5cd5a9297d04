"""
schemas/user.py
---------------
Pydantic models for User management, registration, login and responses.

hashed_password is never part of any response schema.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from portal.core.config import settings
from portal.models.user import UserRole


class UserCreate(BaseModel):
    """Admin-side creation; company_id is optional (unaffiliated user)."""
    email: EmailStr
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH, max_length=128)
    name: Optional[str] = Field(default=None, max_length=100)
    company_id: Optional[str] = None
    role: UserRole = UserRole.user
    is_active: bool = True


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(
        default=None, min_length=settings.PASSWORD_MIN_LENGTH, max_length=128
    )
    name: Optional[str] = Field(default=None, max_length=100)
    company_id: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserRegister(BaseModel):
    """Self-registration: always lands as an unaffiliated 'user'."""
    email: EmailStr
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)


class UserRead(BaseModel):
    id: str
    email: str
    name: Optional[str]
    role: UserRole
    company_id: Optional[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: str
    name: Optional[str]
    email: str

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserRead

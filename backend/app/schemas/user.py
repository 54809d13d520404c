"""User schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.user import UserRole, UserStatus
from app.schemas.base import CamelModel

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


class UserResponse(CamelModel):
    """Schema for user response."""

    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRole
    status: UserStatus
    email_verified: bool
    two_factor_enabled: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserData(CamelModel):
    user: UserResponse


class ProfileUpdateRequest(CamelModel):
    """Schema for profile update; omitted fields are left unchanged."""

    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)

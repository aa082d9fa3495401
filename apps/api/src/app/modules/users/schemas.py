"""
User Schemas

Pydantic schemas for profile requests and responses.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.users.models import UserRole


class UserProfileResponse(BaseModel):
    """A user's profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    avatar_url: str | None = None
    role: UserRole
    grade: str | None = None
    department: str | None = None
    bio: str | None = None
    created_at: datetime


class UserProfileUpdate(BaseModel):
    """Request body for PATCH /users/me. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    grade: str | None = Field(None, max_length=20)
    department: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=1000)

"""
Clubs Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.modules.clubs.models import ClubCategory, MemberRole

MAX_TAGS = 10
MAX_TAG_LENGTH = 30


def normalize_tags(tags: list[str]) -> list[str]:
    """Lower-case, trim and de-duplicate tags, keeping first-seen order."""
    normalized: list[str] = []
    for raw in tags:
        tag = raw.strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Each tag must be at most {MAX_TAG_LENGTH} characters")
        if tag not in normalized:
            normalized.append(tag)

    if len(normalized) > MAX_TAGS:
        raise ValueError(f"Maximum {MAX_TAGS} tags allowed")
    return normalized


# ============================================
# Requests
# ============================================


class ClubCreate(BaseModel):
    """Request body for POST /clubs."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    category: ClubCategory
    image_url: str | None = Field(None, max_length=500)
    meeting_time: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name cannot be blank")
        return value

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class ClubUpdate(BaseModel):
    """Request body for PUT /clubs/{id}."""

    description: str = Field(..., min_length=1, max_length=5000)
    category: ClubCategory
    meeting_time: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)
    image_url: str | None = Field(None, max_length=500)


class ClubTagsUpdate(BaseModel):
    """Request body for PUT /clubs/{id}/tags."""

    tags: list[str]

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class ClaimClubRequest(BaseModel):
    """The caller must explicitly confirm they lead this club."""

    confirmed: bool = False


class TransferLeadershipRequest(BaseModel):
    target_user_id: UUID


class UpdateMemberRoleRequest(BaseModel):
    role: MemberRole


class AddLeaderRequest(BaseModel):
    """Request body for POST /clubs/{id}/members/leaders."""

    email: EmailStr
    role: MemberRole


# ============================================
# Responses
# ============================================


class ClubResponse(BaseModel):
    """A club with its tags."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    category: ClubCategory
    image_url: str | None = None
    meeting_time: str | None = None
    location: str | None = None
    is_claimed: bool
    president_id: UUID | None = None
    tags: list[str] = Field(default_factory=list)
    member_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ClubListItem(ClubResponse):
    """A club in a listing, personalised when the viewer is signed in."""

    is_joined: bool = False
    member_role: MemberRole | None = None


class ClubListResponse(BaseModel):
    clubs: list[ClubListItem]
    count: int


class ClubPresidentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    avatar_url: str | None = None


class ClubDetailResponse(ClubListItem):
    """Club page: the listing fields plus who leads the club."""

    president: ClubPresidentSummary | None = None


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    club_id: UUID
    user_id: UUID
    role: MemberRole
    joined_at: datetime | None = None


class ClubMemberItem(MembershipResponse):
    """A member with their public profile."""

    name: str
    email: str
    avatar_url: str | None = None


class ClubMemberListResponse(BaseModel):
    members: list[ClubMemberItem]
    count: int


class ClaimClubResponse(BaseModel):
    club: ClubResponse
    message: str


class TransferLeadershipResponse(BaseModel):
    club: ClubResponse
    message: str


class MessageResponse(BaseModel):
    message: str

"""
Posts Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_POST_LENGTH = 5000


class PostCreate(BaseModel):
    """Request body for POST /clubs/{id}/posts."""

    content: str = Field(..., min_length=1, max_length=MAX_POST_LENGTH)
    image_url: str | None = Field(None, max_length=500)

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Post content cannot be empty")
        return value


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    club_id: UUID
    user_id: UUID
    content: str
    image_url: str | None = None
    created_at: datetime | None = None
    author_name: str | None = None
    author_avatar_url: str | None = None
    like_count: int = 0
    is_liked: bool = False


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    count: int


class PostLikeResponse(BaseModel):
    """Result of liking or unliking a post."""

    liked: bool
    like_count: int

"""
Posts Router

Endpoints:
- GET /clubs/{id}/posts - List a club's posts, newest first
- POST /clubs/{id}/posts - Publish a post (club members)
- DELETE /posts/{id} - Delete a post (author or club president)
- POST /posts/{id}/like - Like a post
- DELETE /posts/{id}/like - Remove a like
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.posts import service
from app.modules.posts.models import Post
from app.modules.posts.schemas import (
    PostCreate,
    PostLikeResponse,
    PostListResponse,
    PostResponse,
)
from app.modules.posts.service import PostServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_POST_BURST = (5, 60)  # 5 posts per minute
RATE_LIMIT_POST_HOURLY = (30, 3600)
RATE_LIMIT_LIKE = (60, 60)


def _handle_service_error(e: PostServiceError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def _post_to_response(
    post: Post,
    author_name=None,
    author_avatar_url=None,
    like_count: int = 0,
    is_liked: bool = False,
) -> PostResponse:
    return PostResponse(
        id=post.id,
        club_id=post.club_id,
        user_id=post.user_id,
        content=post.content,
        image_url=post.image_url,
        created_at=post.created_at,
        author_name=author_name,
        author_avatar_url=author_avatar_url,
        like_count=like_count,
        is_liked=is_liked,
    )


@router.get("/clubs/{club_id}/posts", response_model=PostListResponse, summary="List Posts")
async def list_posts(
    club_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    viewer: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> PostListResponse:
    """List posts newest first. Signed-in viewers also see which ones they liked."""
    try:
        rows = await service.list_posts(
            db,
            club_id,
            viewer_id=viewer.id if viewer else None,
            limit=limit,
            offset=offset,
        )
    except PostServiceError as e:
        raise _handle_service_error(e) from e

    posts = [
        _post_to_response(post, author.name, author.avatar_url, like_count, is_liked)
        for post, author, like_count, is_liked in rows
    ]
    return PostListResponse(posts=posts, count=len(posts))


@router.post(
    "/clubs/{club_id}/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Post",
)
async def create_post(
    club_id: UUID,
    data: PostCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PostResponse:
    """Publish a post. Only members of the club can post."""
    await enforce_rate_limit(user.id, "post:create:minute", *RATE_LIMIT_POST_BURST)
    await enforce_rate_limit(user.id, "post:create:hour", *RATE_LIMIT_POST_HOURLY)

    try:
        post = await service.create_post(db, club_id, user.id, data.content, data.image_url)
        return _post_to_response(post, user.name, user.avatar_url)
    except PostServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error creating post in club {club_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Post")
async def delete_post(
    post_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_post(db, post_id, user.id)
    except PostServiceError as e:
        raise _handle_service_error(e) from e


@router.post("/posts/{post_id}/like", response_model=PostLikeResponse, summary="Like Post")
async def like_post(
    post_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PostLikeResponse:
    await enforce_rate_limit(user.id, "post:like", *RATE_LIMIT_LIKE)

    try:
        like_count = await service.like_post(db, post_id, user.id)
    except PostServiceError as e:
        raise _handle_service_error(e) from e
    return PostLikeResponse(liked=True, like_count=like_count)


@router.delete("/posts/{post_id}/like", response_model=PostLikeResponse, summary="Unlike Post")
async def unlike_post(
    post_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PostLikeResponse:
    await enforce_rate_limit(user.id, "post:like", *RATE_LIMIT_LIKE)

    try:
        like_count = await service.unlike_post(db, post_id, user.id)
    except PostServiceError as e:
        raise _handle_service_error(e) from e
    return PostLikeResponse(liked=False, like_count=like_count)

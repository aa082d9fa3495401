"""
Posts Service Layer

Club updates: members post, anyone can read, the author or the club
president can delete. Signed-in users like and unlike posts; each post
reports its like count and whether the viewer has liked it.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.clubs import repository as club_repository
from app.modules.posts import repository
from app.modules.posts.models import Post
from app.modules.users.models import User
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class PostServiceError(Exception):
    """Base exception for post service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class PostNotFoundError(PostServiceError):
    def __init__(self):
        super().__init__(message="Post not found", error_code="POST_NOT_FOUND", status_code=404)


class PostClubNotFoundError(PostServiceError):
    def __init__(self):
        super().__init__(message="Club not found", error_code="CLUB_NOT_FOUND", status_code=404)


class NotClubMemberError(PostServiceError):
    """Raised when a non-member tries to post in a club."""

    def __init__(self):
        super().__init__(
            message="You must be a member of this club to post.",
            error_code="NOT_CLUB_MEMBER",
            status_code=403,
        )


class PostPermissionError(PostServiceError):
    """Raised when someone other than the author or club president deletes a post."""

    def __init__(self):
        super().__init__(
            message="You do not have permission to delete this post.",
            error_code="FORBIDDEN",
            status_code=403,
        )


class PostUserNotFoundError(PostServiceError):
    def __init__(self):
        super().__init__(
            message="User not found. Please make sure you are signed in properly and try again.",
            error_code="USER_NOT_FOUND",
            status_code=404,
        )


class AlreadyLikedError(PostServiceError):
    def __init__(self):
        super().__init__(
            message="You have already liked this post.",
            error_code="ALREADY_LIKED",
            status_code=409,
        )


async def create_post(
    db: AsyncSession,
    club_id: UUID,
    user_id: UUID,
    content: str,
    image_url: str | None = None,
) -> Post:
    """
    Publish a post in a club.

    Raises:
        PostClubNotFoundError: If the club does not exist
        NotClubMemberError: If the author has not joined the club
    """
    if not await club_repository.get_club(db, club_id):
        raise PostClubNotFoundError()

    if not await club_repository.get_membership(db, club_id, user_id):
        logger.warning(f"User {user_id} tried to post in club {club_id} without membership")
        raise NotClubMemberError()

    try:
        post = await repository.create_post(
            db, club_id=club_id, user_id=user_id, content=content, image_url=image_url
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} posted {post.id} in club {club_id}")
    return post


async def list_posts(
    db: AsyncSession,
    club_id: UUID,
    *,
    viewer_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[Post, User, int, bool]]:
    """
    List a club's posts newest first.

    Each entry is (post, author, like_count, is_liked). is_liked is always
    False for anonymous viewers.
    """
    if not await club_repository.get_club(db, club_id):
        raise PostClubNotFoundError()

    rows = await repository.list_posts(db, club_id, limit=limit, offset=offset)

    liked: set[UUID] = set()
    if viewer_id is not None and rows:
        liked = await repository.get_liked_post_ids(
            db, viewer_id, [post.id for post, _, _ in rows]
        )

    return [(post, author, count, post.id in liked) for post, author, count in rows]


async def delete_post(db: AsyncSession, post_id: UUID, user_id: UUID) -> None:
    """
    Delete a post.

    Raises:
        PostNotFoundError: If the post does not exist
        PostPermissionError: If the caller is neither the author nor the club president
    """
    post = await repository.get_post(db, post_id)
    if not post:
        raise PostNotFoundError()

    if post.user_id != user_id:
        club = await club_repository.get_club(db, post.club_id)
        if club is None or club.president_id != user_id:
            raise PostPermissionError()

    try:
        await repository.delete_post(db, post_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} deleted post {post_id}")


async def like_post(db: AsyncSession, post_id: UUID, user_id: UUID) -> int:
    """
    Like a post.

    Returns:
        The post's like count after the like

    Raises:
        PostNotFoundError: If the post does not exist
        PostUserNotFoundError: If the user has no profile yet
        AlreadyLikedError: If the user already liked the post
    """
    if not await repository.get_post(db, post_id):
        raise PostNotFoundError()

    if not await UserRepository.get_by_id(db, user_id):
        raise PostUserNotFoundError()

    try:
        added = await repository.add_like(db, post_id, user_id)
        if not added:
            await db.rollback()
            raise AlreadyLikedError()
        like_count = await repository.count_likes(db, post_id)
        await db.commit()
    except PostServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} liked post {post_id}")
    return like_count


async def unlike_post(db: AsyncSession, post_id: UUID, user_id: UUID) -> int:
    """
    Remove the user's like from a post. Unliking a post that was not liked
    is a no-op.

    Returns:
        The post's like count after the unlike

    Raises:
        PostNotFoundError: If the post does not exist
    """
    if not await repository.get_post(db, post_id):
        raise PostNotFoundError()

    try:
        removed = await repository.remove_like(db, post_id, user_id)
        like_count = await repository.count_likes(db, post_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if removed:
        logger.info(f"User {user_id} unliked post {post_id}")
    return like_count

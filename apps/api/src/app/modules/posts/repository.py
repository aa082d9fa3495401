"""
Posts Repository

Database operations for club posts and their likes. Functions only flush;
the service commits.
"""

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User

from .models import Post, PostLike


async def create_post(
    db: AsyncSession,
    *,
    club_id: UUID,
    user_id: UUID,
    content: str,
    image_url: str | None = None,
) -> Post:
    post = Post(club_id=club_id, user_id=user_id, content=content, image_url=image_url)

    db.add(post)
    await db.flush()
    await db.refresh(post)

    return post


async def get_post(db: AsyncSession, post_id: UUID) -> Post | None:
    result = await db.execute(select(Post).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def list_posts(
    db: AsyncSession,
    club_id: UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[Post, User, int]]:
    """Posts of a club with their authors and like counts, newest first."""
    like_counts = (
        select(PostLike.post_id, func.count(PostLike.id).label("like_count"))
        .group_by(PostLike.post_id)
        .subquery()
    )
    result = await db.execute(
        select(Post, User, func.coalesce(like_counts.c.like_count, 0))
        .join(User, User.id == Post.user_id)
        .outerjoin(like_counts, like_counts.c.post_id == Post.id)
        .where(Post.club_id == club_id)
        .order_by(Post.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return [(post, author, like_count) for post, author, like_count in result.all()]


async def delete_post(db: AsyncSession, post_id: UUID) -> bool:
    result = await db.execute(
        delete(Post).where(Post.id == post_id).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ============================================
# Likes
# ============================================


async def add_like(db: AsyncSession, post_id: UUID, user_id: UUID) -> bool:
    """
    Record a like.

    Returns:
        False if the user had already liked the post
    """
    result = await db.execute(
        pg_insert(PostLike)
        .values(post_id=post_id, user_id=user_id)
        .on_conflict_do_nothing(constraint="uq_post_likes_post_user")
        .returning(PostLike.id)
    )
    return result.scalar_one_or_none() is not None


async def remove_like(db: AsyncSession, post_id: UUID, user_id: UUID) -> bool:
    result = await db.execute(
        delete(PostLike)
        .where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def count_likes(db: AsyncSession, post_id: UUID) -> int:
    result = await db.execute(
        select(func.count(PostLike.id)).where(PostLike.post_id == post_id)
    )
    return result.scalar_one()


async def get_liked_post_ids(
    db: AsyncSession, user_id: UUID, post_ids: list[UUID]
) -> set[UUID]:
    """Which of the given posts the user has liked."""
    if not post_ids:
        return set()
    result = await db.execute(
        select(PostLike.post_id).where(
            PostLike.user_id == user_id,
            PostLike.post_id.in_(post_ids),
        )
    )
    return set(result.scalars().all())

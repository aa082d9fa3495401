"""
User Repository

Database operations for user profiles.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "grade", "department", "bio")


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        """
        Get a user by ID.

        Args:
            db: Database session
            user_id: User UUID

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get a user by email address (case-insensitive).

        Args:
            db: Database session
            email: Email address

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_from_identity(
        db: AsyncSession,
        *,
        user_id: UUID,
        email: str,
        name: str,
        avatar_url: str | None = None,
    ) -> User:
        """
        Create or refresh a profile from identity provider claims.

        The platform role and profile fields edited in the app are kept;
        only identity fields are overwritten.

        Args:
            db: Database session
            user_id: Identity provider subject id
            email: Email from the token
            name: Display name from the token
            avatar_url: Avatar from the token (optional)

        Returns:
            The stored User

        Raises:
            IntegrityError: If the email already belongs to another profile.
                The session is rolled back before re-raising.
        """
        stmt = (
            pg_insert(User)
            .values(id=user_id, email=email, name=name, avatar_url=avatar_url)
            .on_conflict_do_update(
                index_elements=[User.id],
                set_={
                    "email": email,
                    "avatar_url": avatar_url,
                    "updated_at": func.now(),
                },
            )
            .returning(User)
            .execution_options(populate_existing=True)
        )
        try:
            result = await db.execute(stmt)
            user = result.scalar_one()
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Profile sync for {user_id} rejected: email {email} already in use")
            raise

        logger.info(f"Synced user profile: {user.id}")
        return user

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, **fields) -> User:
        """
        Update editable profile fields.

        Args:
            db: Database session
            user: User to update
            **fields: Any of name, grade, department, bio

        Returns:
            Updated User instance
        """
        for key, value in fields.items():
            if key in PROFILE_FIELDS:
                setattr(user, key, value)

        await db.commit()
        await db.refresh(user)

        logger.info(f"Updated profile for user {user.id}")
        return user

"""
Clubs Repository

Database operations for clubs, memberships and tags.

Leadership writes are conditional statements: the precondition is part of
the WHERE clause and the affected row count decides success, so there is no
window between checking state and changing it.

Functions only flush; the service layer owns commit/rollback so each
operation is a single transaction.
"""

from uuid import UUID

from sqlalchemy import case, delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User

from .models import ROLE_RANK, Club, ClubCategory, ClubMembership, ClubTag, MemberRole

# ============================================
# Club Repository
# ============================================


async def create_club(
    db: AsyncSession,
    *,
    name: str,
    description: str,
    category: ClubCategory,
    image_url: str | None = None,
    meeting_time: str | None = None,
    location: str | None = None,
    tags: list[str] | None = None,
) -> Club:
    """Create a new, unclaimed club."""
    club = Club(
        name=name,
        description=description,
        category=category,
        image_url=image_url,
        meeting_time=meeting_time,
        location=location,
        is_claimed=False,
        president_id=None,
        tags=[ClubTag(tag=tag) for tag in tags or []],
    )

    db.add(club)
    await db.flush()
    await db.refresh(club)

    return club


async def get_club(db: AsyncSession, club_id: UUID) -> Club | None:
    """Get a club by ID, always reloading its current row."""
    result = await db.execute(
        select(Club).where(Club.id == club_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_club_by_name(db: AsyncSession, name: str) -> Club | None:
    """Get a club by exact name (case-insensitive)."""
    result = await db.execute(select(Club).where(func.lower(Club.name) == name.lower()))
    return result.scalar_one_or_none()


def _member_count_subquery():
    return (
        select(func.count(ClubMembership.id))
        .where(ClubMembership.club_id == Club.id)
        .correlate(Club)
        .scalar_subquery()
    )


async def list_clubs(
    db: AsyncSession,
    *,
    category: ClubCategory | None = None,
    is_claimed: bool | None = None,
) -> list[tuple[Club, int]]:
    """
    List clubs newest first, each paired with its member count.

    Args:
        db: Database session
        category: Only clubs in this category
        is_claimed: Only claimed (True) or unclaimed (False) clubs
    """
    stmt = select(Club, _member_count_subquery().label("member_count"))

    if category is not None:
        stmt = stmt.where(Club.category == category)
    if is_claimed is not None:
        stmt = stmt.where(Club.is_claimed == is_claimed)

    result = await db.execute(stmt.order_by(Club.created_at.desc()))
    return [(club, count) for club, count in result.all()]


async def count_members(db: AsyncSession, club_id: UUID) -> int:
    result = await db.execute(
        select(func.count(ClubMembership.id)).where(ClubMembership.club_id == club_id)
    )
    return result.scalar_one()


async def update_club_details(db: AsyncSession, club: Club, **fields) -> Club:
    """Update descriptive fields on a club. Leadership fields are never touched here."""
    for key, value in fields.items():
        if key in {"description", "category", "meeting_time", "location", "image_url"}:
            setattr(club, key, value)

    await db.flush()
    await db.refresh(club)
    return club


async def claim_club(db: AsyncSession, club_id: UUID, user_id: UUID) -> bool:
    """
    Mark an unclaimed club as claimed by user_id.

    Compare-and-set on is_claimed: only one of any number of concurrent
    callers can match the WHERE clause.

    Returns:
        True if this call claimed the club, False if it was already claimed
    """
    result = await db.execute(
        update(Club)
        .where(Club.id == club_id, Club.is_claimed == False)  # noqa: E712
        .values(is_claimed=True, president_id=user_id, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reassign_president(
    db: AsyncSession,
    club_id: UUID,
    from_user_id: UUID,
    to_user_id: UUID,
) -> bool:
    """
    Move Club.president_id from one user to another.

    Only succeeds while from_user_id is still the president.

    Returns:
        True if the president reference changed
    """
    result = await db.execute(
        update(Club)
        .where(
            Club.id == club_id,
            Club.is_claimed == True,  # noqa: E712
            Club.president_id == from_user_id,
        )
        .values(president_id=to_user_id, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ============================================
# Membership Repository
# ============================================


async def get_membership(db: AsyncSession, club_id: UUID, user_id: UUID) -> ClubMembership | None:
    result = await db.execute(
        select(ClubMembership)
        .where(ClubMembership.club_id == club_id, ClubMembership.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_memberships(db: AsyncSession, user_id: UUID) -> dict[UUID, MemberRole]:
    """Map of club_id -> role for every club the user belongs to."""
    result = await db.execute(
        select(ClubMembership.club_id, ClubMembership.role).where(
            ClubMembership.user_id == user_id
        )
    )
    return {club_id: role for club_id, role in result.all()}


async def list_members(db: AsyncSession, club_id: UUID) -> list[tuple[ClubMembership, User]]:
    """Members with their profiles, president first, then by join date."""
    role_order = case(
        *[(ClubMembership.role == role, rank) for role, rank in ROLE_RANK.items()],
        else_=len(ROLE_RANK) + 1,
    )
    result = await db.execute(
        select(ClubMembership, User)
        .join(User, User.id == ClubMembership.user_id)
        .where(ClubMembership.club_id == club_id)
        .order_by(role_order, ClubMembership.joined_at.asc())
    )
    return [(membership, user) for membership, user in result.all()]


async def add_membership(
    db: AsyncSession,
    club_id: UUID,
    user_id: UUID,
    role: MemberRole = MemberRole.MEMBER,
) -> ClubMembership | None:
    """
    Insert a membership if none exists for (club, user).

    Returns:
        The new membership, or None if the user was already a member
    """
    result = await db.execute(
        pg_insert(ClubMembership)
        .values(club_id=club_id, user_id=user_id, role=role)
        .on_conflict_do_nothing(constraint="uq_club_memberships_club_user")
        .returning(ClubMembership)
    )
    return result.scalar_one_or_none()


async def upsert_membership(
    db: AsyncSession,
    club_id: UUID,
    user_id: UUID,
    role: MemberRole,
    *,
    protect_president: bool = False,
) -> ClubMembership | None:
    """
    Insert a membership or overwrite the role of the existing one.

    Args:
        protect_president: Leave an existing president row untouched

    Returns:
        The stored membership, or None if a protected president row blocked it
    """
    stmt = pg_insert(ClubMembership).values(club_id=club_id, user_id=user_id, role=role)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_club_memberships_club_user",
        set_={"role": role},
        where=(ClubMembership.role != MemberRole.PRESIDENT) if protect_president else None,
    )
    result = await db.execute(
        stmt.returning(ClubMembership).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_membership_role(
    db: AsyncSession,
    club_id: UUID,
    user_id: UUID,
    role: MemberRole,
    *,
    protect_president: bool = True,
    acting_president_id: UUID | None = None,
) -> ClubMembership | None:
    """
    Change the role on an existing membership.

    Args:
        protect_president: Refuse to change a row that currently holds president
        acting_president_id: Only apply while this user is the club's president

    Returns:
        The updated membership, or None if no row matched
    """
    stmt = update(ClubMembership).where(
        ClubMembership.club_id == club_id,
        ClubMembership.user_id == user_id,
    )
    if protect_president:
        stmt = stmt.where(ClubMembership.role != MemberRole.PRESIDENT)
    if acting_president_id is not None:
        stmt = stmt.where(
            exists().where(Club.id == club_id, Club.president_id == acting_president_id)
        )

    result = await db.execute(
        stmt.values(role=role)
        .returning(ClubMembership)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    return result.scalar_one_or_none()


async def delete_membership(db: AsyncSession, club_id: UUID, user_id: UUID) -> bool:
    """
    Remove a non-president membership.

    Returns:
        True if a row was deleted
    """
    result = await db.execute(
        delete(ClubMembership)
        .where(
            ClubMembership.club_id == club_id,
            ClubMembership.user_id == user_id,
            ClubMembership.role != MemberRole.PRESIDENT,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ============================================
# Tag Repository
# ============================================


async def replace_tags(db: AsyncSession, club_id: UUID, tags: list[str]) -> list[str]:
    """Replace the full tag set of a club."""
    await db.execute(delete(ClubTag).where(ClubTag.club_id == club_id))
    if tags:
        db.add_all([ClubTag(club_id=club_id, tag=tag) for tag in tags])
    await db.flush()
    return sorted(tags)

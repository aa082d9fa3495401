"""
Clubs Service Layer

Business logic for club membership and leadership.

This module implements:
1. Claim:
   - One-time transition of an unclaimed club to claimed with its first president
   - Requires explicit confirmation from the caller
   - Single winner under concurrent claims (conditional update)

2. Leadership Transfer:
   - President hands the role to an existing member
   - Outgoing president stays in the club as an officer

3. Role Changes:
   - President assigns member / officer / vice_president to other members
   - Never grants or removes president (claim and transfer only)
   - President adding leaders by email

4. Join / Leave:
   - Join creates a plain membership, rejects duplicates
   - The current president cannot leave before transferring

5. Club catalogue:
   - Creation (platform admins), listing, details, tags

Every operation that writes runs as one transaction: the service commits
once at the end and rolls back on any failure, so Club.president_id and
the president membership row always change together.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.clubs import policy, repository
from app.modules.clubs.models import Club, ClubCategory, ClubMembership, MemberRole
from app.modules.clubs.policy import Denial
from app.modules.users.models import User
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


# ============================================
# Errors
# ============================================


class ClubServiceError(Exception):
    """Base exception for club service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ClubNotFoundError(ClubServiceError):
    """Raised when a club is not found."""

    def __init__(self, club_id: UUID | None = None):
        message = f"Club {club_id} not found" if club_id else "Club not found"
        super().__init__(message=message, error_code="CLUB_NOT_FOUND", status_code=404)


class ClubAlreadyClaimedError(ClubServiceError):
    """Raised when claiming a club that already has a president."""

    def __init__(self):
        super().__init__(
            message="This club has already been claimed by another president.",
            error_code="ALREADY_CLAIMED",
            status_code=409,
        )


class ClaimNotConfirmedError(ClubServiceError):
    """Raised when a claim is submitted without explicit confirmation."""

    def __init__(self):
        super().__init__(
            message="You must confirm that you are the president of this club.",
            error_code="NOT_CONFIRMED",
            status_code=400,
        )


class ClubNotClaimedError(ClubServiceError):
    """Raised when a leadership operation targets a club with no president."""

    def __init__(self):
        super().__init__(
            message="This club has not been claimed yet.",
            error_code="CLUB_NOT_CLAIMED",
            status_code=409,
        )


class NotPresidentError(ClubServiceError):
    """Raised when the caller is not the club's president."""

    def __init__(self, action: str = "perform this action"):
        super().__init__(
            message=f"Only the club president can {action}.",
            error_code="NOT_PRESIDENT",
            status_code=403,
        )


class LeadershipRequiredError(ClubServiceError):
    """Raised when the caller holds no leadership role in the club."""

    def __init__(self):
        super().__init__(
            message="Only club leadership can edit this club.",
            error_code="LEADERSHIP_REQUIRED",
            status_code=403,
        )


class AdminRequiredError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="Only platform admins can create clubs.",
            error_code="ADMIN_REQUIRED",
            status_code=403,
        )


class SelfTransferError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="You are already the president of this club.",
            error_code="SELF_TRANSFER",
            status_code=400,
        )


class SelfDemotionError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message=(
                "You cannot change your own role. "
                "Transfer the presidency to another member first."
            ),
            error_code="SELF_DEMOTION",
            status_code=400,
        )


class InvalidRoleError(ClubServiceError):
    """Raised for roles that cannot be assigned through the requested path."""

    def __init__(self, role: MemberRole | str):
        value = role.value if isinstance(role, MemberRole) else role
        if value == MemberRole.PRESIDENT.value:
            message = "The president role can only change hands through a leadership transfer."
        else:
            message = f"Role '{value}' cannot be assigned here."
        super().__init__(message=message, error_code="INVALID_ROLE", status_code=400)


class TargetNotMemberError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="The new president must be a member of the club.",
            error_code="TARGET_NOT_MEMBER",
            status_code=409,
        )


class MembershipNotFoundError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="Not a member of this club.",
            error_code="NOT_MEMBER",
            status_code=404,
        )


class AlreadyMemberError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="Already a member of this club.",
            error_code="ALREADY_MEMBER",
            status_code=409,
        )


class PresidentCannotLeaveError(ClubServiceError):
    def __init__(self):
        super().__init__(
            message="The president cannot leave the club. Transfer the presidency first.",
            error_code="IS_PRESIDENT",
            status_code=409,
        )


class UserNotFoundError(ClubServiceError):
    def __init__(self, message: str = "User not found. They need to sign in first."):
        super().__init__(message=message, error_code="USER_NOT_FOUND", status_code=404)


class DuplicateClubNameError(ClubServiceError):
    def __init__(self, name: str):
        super().__init__(
            message=f"A club named '{name}' already exists.",
            error_code="DUPLICATE_CLUB",
            status_code=409,
        )


# ============================================
# Helpers
# ============================================


async def _get_club_or_404(db: AsyncSession, club_id: UUID) -> Club:
    club = await repository.get_club(db, club_id)
    if not club:
        raise ClubNotFoundError(club_id)
    return club


async def _acting_role(db: AsyncSession, club: Club, user_id: UUID) -> MemberRole | None:
    """
    Resolve the caller's effective role in a club.

    Club.president_id is authoritative for presidency; a president-role
    membership that disagrees with it is not honoured.
    """
    membership = await repository.get_membership(db, club.id, user_id)
    if membership is None:
        return None
    if membership.role == MemberRole.PRESIDENT and club.president_id != user_id:
        logger.error(
            f"Membership/president mismatch in club {club.id}: user {user_id} "
            f"holds president role but club president is {club.president_id}"
        )
        return MemberRole.MEMBER
    return membership.role


async def _rollback_and_raise(db: AsyncSession, error: ClubServiceError) -> None:
    await db.rollback()
    raise error


# ============================================
# Leadership transactions
# ============================================


async def claim_club(
    db: AsyncSession,
    club_id: UUID,
    user_id: UUID,
    *,
    confirmed: bool,
) -> Club:
    """
    Claim an unclaimed club and become its first president.

    1. Reject unless the caller explicitly confirmed
    2. Compare-and-set the club to claimed with the caller as president
    3. Upsert the caller's membership to president (an existing plain
       membership is promoted rather than duplicated)

    Args:
        db: Database session
        club_id: Club to claim
        user_id: Claiming user
        confirmed: Caller's explicit confirmation

    Returns:
        The claimed Club

    Raises:
        ClaimNotConfirmedError: If confirmed is False
        ClubNotFoundError: If the club does not exist
        UserNotFoundError: If the user has no profile yet
        ClubAlreadyClaimedError: If the club has (or just got) a president
    """
    if not confirmed:
        raise ClaimNotConfirmedError()

    club = await _get_club_or_404(db, club_id)

    if not await UserRepository.get_by_id(db, user_id):
        raise UserNotFoundError(
            "User not found. Please make sure you are signed in properly and try again."
        )

    if policy.check_claim(club) == Denial.ALREADY_CLAIMED:
        logger.info(f"Claim rejected, club {club_id} already claimed")
        raise ClubAlreadyClaimedError()

    try:
        claimed = await repository.claim_club(db, club_id, user_id)
        if not claimed:
            # Lost the race to a concurrent claim
            logger.info(f"Claim race lost for club {club_id} by user {user_id}")
            await _rollback_and_raise(db, ClubAlreadyClaimedError())

        await repository.upsert_membership(db, club_id, user_id, MemberRole.PRESIDENT)
        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Club {club_id} claimed by user {user_id}")
    return await _get_club_or_404(db, club_id)


async def transfer_leadership(
    db: AsyncSession,
    club_id: UUID,
    acting_user_id: UUID,
    target_user_id: UUID,
) -> Club:
    """
    Hand the presidency to another existing member.

    The outgoing president is demoted to officer, the target becomes
    president and Club.president_id follows, all in one transaction.

    Raises:
        ClubNotFoundError: If the club does not exist
        ClubNotClaimedError: If the club has no president
        NotPresidentError: If the caller is not the current president
        SelfTransferError: If the caller targets themselves
        TargetNotMemberError: If the target has not joined the club
    """
    club = await _get_club_or_404(db, club_id)
    acting_role = await _acting_role(db, club, acting_user_id)

    denial = policy.check_transfer(club, acting_user_id, target_user_id, acting_role)
    if denial == Denial.NOT_CLAIMED:
        raise ClubNotClaimedError()
    if denial == Denial.NOT_AUTHORIZED:
        logger.warning(f"Transfer denied: user {acting_user_id} is not president of {club_id}")
        raise NotPresidentError("transfer leadership")
    if denial == Denial.SELF_TARGET:
        raise SelfTransferError()

    target = await repository.get_membership(db, club_id, target_user_id)
    if target is None:
        raise TargetNotMemberError()

    try:
        moved = await repository.reassign_president(db, club_id, acting_user_id, target_user_id)
        if not moved:
            await _rollback_and_raise(db, NotPresidentError("transfer leadership"))

        # Demote first so the one-president index never sees two rows
        await repository.update_membership_role(
            db, club_id, acting_user_id, MemberRole.OFFICER, protect_president=False
        )
        promoted = await repository.update_membership_role(
            db, club_id, target_user_id, MemberRole.PRESIDENT, protect_president=False
        )
        if promoted is None:
            # Target left between the check and the write
            await _rollback_and_raise(db, TargetNotMemberError())

        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Leadership of club {club_id} transferred from {acting_user_id} to {target_user_id}"
    )
    return await _get_club_or_404(db, club_id)


async def set_member_role(
    db: AsyncSession,
    club_id: UUID,
    acting_user_id: UUID,
    target_user_id: UUID,
    role: MemberRole | str,
) -> ClubMembership:
    """
    President changes another member's role among member/officer/vice_president.

    Raises:
        ClubNotFoundError: If the club does not exist
        NotPresidentError: If the caller is not the president
        InvalidRoleError: If role is president or unknown
        SelfDemotionError: If the president targets themselves
        MembershipNotFoundError: If the target is not a (non-president) member
    """
    club = await _get_club_or_404(db, club_id)
    acting_role = await _acting_role(db, club, acting_user_id)

    denial = policy.check_set_role(acting_user_id, target_user_id, acting_role, role)
    if denial == Denial.NOT_AUTHORIZED:
        logger.warning(f"Role change denied: user {acting_user_id} is not president of {club_id}")
        raise NotPresidentError("update member roles")
    if denial == Denial.INVALID_ROLE:
        raise InvalidRoleError(role)
    if denial == Denial.SELF_TARGET:
        raise SelfDemotionError()

    new_role = MemberRole(role)

    try:
        membership = await repository.update_membership_role(
            db,
            club_id,
            target_user_id,
            new_role,
            acting_president_id=acting_user_id,
        )
        if membership is None:
            await _rollback_and_raise(db, MembershipNotFoundError())
        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"User {acting_user_id} set role of {target_user_id} in club {club_id} to {new_role.value}"
    )
    return membership


async def add_leader(
    db: AsyncSession,
    club_id: UUID,
    acting_user_id: UUID,
    email: str,
    role: MemberRole | str,
) -> ClubMembership:
    """
    President adds an officer or vice president by email.

    Non-members are added with the leadership role; existing members have
    their role updated.

    Raises:
        ClubNotFoundError: If the club does not exist
        NotPresidentError: If the caller is not the president
        UserNotFoundError: If nobody with that email has signed in
        InvalidRoleError: If role is not officer or vice_president
        SelfDemotionError: If the president targets themselves
    """
    club = await _get_club_or_404(db, club_id)
    acting_role = await _acting_role(db, club, acting_user_id)

    if not policy.can_promote(acting_role):
        raise NotPresidentError("add leaders")

    user = await UserRepository.get_by_email(db, email)
    if not user:
        raise UserNotFoundError("User with this email not found. They need to sign in first.")

    denial = policy.check_add_leader(acting_user_id, user.id, acting_role, role)
    if denial == Denial.INVALID_ROLE:
        raise InvalidRoleError(role)
    if denial == Denial.SELF_TARGET:
        raise SelfDemotionError()

    try:
        membership = await repository.upsert_membership(
            db, club_id, user.id, MemberRole(role), protect_president=True
        )
        if membership is None:
            await _rollback_and_raise(db, SelfDemotionError())
        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {acting_user_id} added {user.id} as {membership.role.value} of {club_id}")
    return membership


# ============================================
# Join / Leave
# ============================================


async def join_club(db: AsyncSession, club_id: UUID, user_id: UUID) -> ClubMembership:
    """
    Join a club as a plain member.

    Raises:
        ClubNotFoundError: If the club does not exist
        UserNotFoundError: If the user has no profile yet
        AlreadyMemberError: If the user already belongs to the club
    """
    await _get_club_or_404(db, club_id)

    if not await UserRepository.get_by_id(db, user_id):
        raise UserNotFoundError(
            "User not found. Please make sure you are signed in properly and try again."
        )

    try:
        membership = await repository.add_membership(db, club_id, user_id)
        if membership is None:
            await _rollback_and_raise(db, AlreadyMemberError())
        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} joined club {club_id}")
    return membership


async def leave_club(db: AsyncSession, club_id: UUID, user_id: UUID) -> None:
    """
    Leave a club.

    Raises:
        ClubNotFoundError: If the club does not exist
        PresidentCannotLeaveError: If the user is the current president
        MembershipNotFoundError: If the user is not a member
    """
    club = await _get_club_or_404(db, club_id)

    if club.president_id == user_id:
        raise PresidentCannotLeaveError()

    try:
        deleted = await repository.delete_membership(db, club_id, user_id)
        if not deleted:
            # The row survives the guarded delete only if it holds president
            remaining = await repository.get_membership(db, club_id, user_id)
            error = PresidentCannotLeaveError() if remaining else MembershipNotFoundError()
            await _rollback_and_raise(db, error)
        await db.commit()
    except ClubServiceError:
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} left club {club_id}")


# ============================================
# Club catalogue
# ============================================


async def create_club(
    db: AsyncSession,
    acting_user_id: UUID,
    *,
    name: str,
    description: str,
    category: ClubCategory,
    image_url: str | None = None,
    meeting_time: str | None = None,
    location: str | None = None,
    tags: list[str] | None = None,
) -> Club:
    """
    Create a new unclaimed club. Platform admins only.

    Raises:
        AdminRequiredError: If the caller is not a platform admin
        DuplicateClubNameError: If the name is taken
    """
    user = await UserRepository.get_by_id(db, acting_user_id)
    if not user or not user.is_admin:
        raise AdminRequiredError()

    if await repository.get_club_by_name(db, name):
        raise DuplicateClubNameError(name)

    try:
        club = await repository.create_club(
            db,
            name=name,
            description=description,
            category=category,
            image_url=image_url,
            meeting_time=meeting_time,
            location=location,
            tags=tags,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Created club {club.id} - {club.name}")
    return club


async def list_clubs(
    db: AsyncSession,
    *,
    category: ClubCategory | None = None,
    is_claimed: bool | None = None,
    viewer_id: UUID | None = None,
) -> list[tuple[Club, int, MemberRole | None]]:
    """
    List clubs with member counts.

    When a viewer is given, each entry also carries the viewer's role in
    that club (None if they have not joined).
    """
    rows = await repository.list_clubs(db, category=category, is_claimed=is_claimed)

    roles: dict[UUID, MemberRole] = {}
    if viewer_id is not None:
        roles = await repository.get_user_memberships(db, viewer_id)

    return [(club, count, roles.get(club.id)) for club, count in rows]


async def get_club_detail(
    db: AsyncSession,
    club_id: UUID,
    viewer_id: UUID | None = None,
) -> tuple[Club, int, User | None, MemberRole | None]:
    """
    Return a club with its member count, its president's profile and the
    viewer's role (None for anonymous viewers and non-members).

    Raises:
        ClubNotFoundError: If the club does not exist
    """
    club = await _get_club_or_404(db, club_id)
    member_count = await repository.count_members(db, club_id)

    president = None
    if club.president_id is not None:
        president = await UserRepository.get_by_id(db, club.president_id)

    viewer_role = None
    if viewer_id is not None:
        viewer_role = await _acting_role(db, club, viewer_id)

    return club, member_count, president, viewer_role


async def list_members(
    db: AsyncSession, club_id: UUID
) -> list[tuple[ClubMembership, User]]:
    await _get_club_or_404(db, club_id)
    return await repository.list_members(db, club_id)


async def _require_leadership(db: AsyncSession, club: Club, user_id: UUID) -> None:
    if not policy.is_leader(await _acting_role(db, club, user_id)):
        logger.warning(f"User {user_id} attempted to edit club {club.id} without leadership")
        raise LeadershipRequiredError()


async def update_club_details(
    db: AsyncSession,
    club_id: UUID,
    acting_user_id: UUID,
    **fields,
) -> Club:
    """
    Update a club's descriptive fields. Club leadership only.

    Raises:
        ClubNotFoundError: If the club does not exist
        LeadershipRequiredError: If the caller holds no leadership role
    """
    club = await _get_club_or_404(db, club_id)
    await _require_leadership(db, club, acting_user_id)

    try:
        club = await repository.update_club_details(db, club, **fields)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {acting_user_id} updated details of club {club_id}")
    return club


async def update_club_tags(
    db: AsyncSession,
    club_id: UUID,
    acting_user_id: UUID,
    tags: list[str],
) -> list[str]:
    """
    Replace a club's tags. Club leadership only.

    Tags arrive already normalised by the request schema.
    """
    club = await _get_club_or_404(db, club_id)
    await _require_leadership(db, club, acting_user_id)

    try:
        stored = await repository.replace_tags(db, club_id, tags)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {acting_user_id} set {len(stored)} tags on club {club_id}")
    return stored

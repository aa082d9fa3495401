"""
Clubs Router

API endpoints for browsing clubs and managing membership and leadership.

Endpoints:
- GET /clubs - List clubs (personalised when signed in)
- POST /clubs - Create a club (platform admins)
- GET /clubs/{id} - Club details with president and viewer role
- PUT /clubs/{id} - Update club details (club leadership)
- PUT /clubs/{id}/tags - Replace club tags (club leadership)
- POST /clubs/{id}/claim - Claim an unclaimed club
- POST /clubs/{id}/transfer - Transfer the presidency
- POST /clubs/{id}/join - Join a club
- DELETE /clubs/{id}/join - Leave a club
- GET /clubs/{id}/members - List members
- PUT /clubs/{id}/members/{user_id}/role - Change a member's role (president)
- POST /clubs/{id}/members/leaders - Add a leader by email (president)

Security:
- Write endpoints require a valid identity provider token
- Per-user rate limiting on every write endpoint
- Input validation via Pydantic schemas
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.clubs import service
from app.modules.clubs.models import Club, ClubCategory, MemberRole
from app.modules.clubs.schemas import (
    AddLeaderRequest,
    ClaimClubRequest,
    ClaimClubResponse,
    ClubCreate,
    ClubDetailResponse,
    ClubListItem,
    ClubListResponse,
    ClubMemberItem,
    ClubMemberListResponse,
    ClubPresidentSummary,
    ClubResponse,
    ClubTagsUpdate,
    ClubUpdate,
    MembershipResponse,
    MessageResponse,
    TransferLeadershipRequest,
    TransferLeadershipResponse,
    UpdateMemberRoleRequest,
)
from app.modules.clubs.service import ClubServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_CLAIM = (5, 60)  # 5 claims per minute
RATE_LIMIT_TRANSFER = (30, 60)
RATE_LIMIT_ROLE_CHANGE = (30, 60)
RATE_LIMIT_MEMBERSHIP = (20, 60)  # joins and leaves
RATE_LIMIT_CLUB_EDIT = (20, 60)
RATE_LIMIT_CREATE = (20, 60)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ClubServiceError) -> HTTPException:
    """Convert a service error into an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Unexpected error while trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


def _club_to_response(club: Club, member_count: int | None = None) -> ClubResponse:
    return ClubResponse(
        id=club.id,
        name=club.name,
        description=club.description,
        category=club.category,
        image_url=club.image_url,
        meeting_time=club.meeting_time,
        location=club.location,
        is_claimed=club.is_claimed,
        president_id=club.president_id,
        tags=club.tag_names,
        member_count=member_count,
        created_at=club.created_at,
        updated_at=club.updated_at,
    )


# ============================================
# Club catalogue
# ============================================


@router.get("", response_model=ClubListResponse, summary="List Clubs")
async def list_clubs(
    category: ClubCategory | None = Query(None),
    is_claimed: bool | None = Query(None),
    viewer: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> ClubListResponse:
    """
    List clubs newest first.

    When the caller is signed in, each club also reports whether they have
    joined it and with which role.
    """
    rows = await service.list_clubs(
        db,
        category=category,
        is_claimed=is_claimed,
        viewer_id=viewer.id if viewer else None,
    )
    clubs = [
        ClubListItem(
            **_club_to_response(club, count).model_dump(),
            is_joined=role is not None,
            member_role=role,
        )
        for club, count, role in rows
    ]
    return ClubListResponse(clubs=clubs, count=len(clubs))


@router.post(
    "",
    response_model=ClubResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Club",
)
async def create_club(
    data: ClubCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ClubResponse:
    """Create a new unclaimed club. Platform admins only."""
    await enforce_rate_limit(user.id, "club:create", *RATE_LIMIT_CREATE)

    try:
        club = await service.create_club(db, user.id, **data.model_dump())
        return _club_to_response(club, member_count=0)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("create club", e) from e


@router.get("/{club_id}", response_model=ClubDetailResponse, summary="Get Club")
async def get_club(
    club_id: UUID,
    viewer: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> ClubDetailResponse:
    """
    Club details with the president's public profile.

    Signed-in viewers also see whether they have joined and with which role.
    """
    try:
        club, member_count, president, role = await service.get_club_detail(
            db, club_id, viewer_id=viewer.id if viewer else None
        )
    except ClubServiceError as e:
        raise _handle_service_error(e) from e

    return ClubDetailResponse(
        **_club_to_response(club, member_count).model_dump(),
        is_joined=role is not None,
        member_role=role,
        president=ClubPresidentSummary.model_validate(president) if president else None,
    )


@router.put("/{club_id}", response_model=ClubResponse, summary="Update Club Details")
async def update_club(
    club_id: UUID,
    data: ClubUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ClubResponse:
    """Update description, category, meeting time, location and image. Leadership only."""
    await enforce_rate_limit(user.id, "club:edit", *RATE_LIMIT_CLUB_EDIT)

    try:
        club = await service.update_club_details(db, club_id, user.id, **data.model_dump())
        return _club_to_response(club)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("update club", e) from e


@router.put("/{club_id}/tags", response_model=list[str], summary="Replace Club Tags")
async def update_tags(
    club_id: UUID,
    data: ClubTagsUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[str]:
    await enforce_rate_limit(user.id, "club:edit", *RATE_LIMIT_CLUB_EDIT)

    try:
        return await service.update_club_tags(db, club_id, user.id, data.tags)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("update tags", e) from e


# ============================================
# Leadership
# ============================================


@router.post(
    "/{club_id}/claim",
    response_model=ClaimClubResponse,
    summary="Claim Club",
    description="""
Claim an unclaimed club and become its president.

The caller must send `confirmed: true`, asserting they are the club's
president. A club can only ever be claimed once; when two people claim at
the same time exactly one succeeds and the other receives 409 ALREADY_CLAIMED.
""",
    responses={
        400: {"description": "Confirmation missing"},
        404: {"description": "Club not found"},
        409: {
            "description": "Club already claimed",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "ALREADY_CLAIMED",
                            "message": "This club has already been claimed by another president.",
                        }
                    }
                }
            },
        },
    },
)
async def claim_club(
    club_id: UUID,
    data: ClaimClubRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ClaimClubResponse:
    await enforce_rate_limit(user.id, "club:claim", *RATE_LIMIT_CLAIM)

    try:
        club = await service.claim_club(db, club_id, user.id, confirmed=data.confirmed)
        return ClaimClubResponse(
            club=_club_to_response(club),
            message=f"You are now the president of {club.name}!",
        )
    except ClubServiceError as e:
        logger.info(f"Claim of club {club_id} by {user.id} rejected: {e.error_code}")
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("claim club", e) from e


@router.post(
    "/{club_id}/transfer",
    response_model=TransferLeadershipResponse,
    summary="Transfer Presidency",
)
async def transfer_leadership(
    club_id: UUID,
    data: TransferLeadershipRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TransferLeadershipResponse:
    """Hand the presidency to another member; the caller becomes an officer."""
    await enforce_rate_limit(user.id, "club:transfer", *RATE_LIMIT_TRANSFER)

    try:
        club = await service.transfer_leadership(db, club_id, user.id, data.target_user_id)
        return TransferLeadershipResponse(
            club=_club_to_response(club),
            message="Presidency transferred successfully.",
        )
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("transfer leadership", e) from e


@router.put(
    "/{club_id}/members/{member_user_id}/role",
    response_model=MembershipResponse,
    summary="Update Member Role",
)
async def update_member_role(
    club_id: UUID,
    member_user_id: UUID,
    data: UpdateMemberRoleRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    """Set a member's role to member, officer or vice_president. President only."""
    await enforce_rate_limit(user.id, "club:role", *RATE_LIMIT_ROLE_CHANGE)

    try:
        membership = await service.set_member_role(
            db, club_id, user.id, member_user_id, data.role
        )
        return MembershipResponse.model_validate(membership)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("update member role", e) from e


@router.post(
    "/{club_id}/members/leaders",
    response_model=MembershipResponse,
    summary="Add Leader By Email",
)
async def add_leader(
    club_id: UUID,
    data: AddLeaderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    await enforce_rate_limit(user.id, "club:role", *RATE_LIMIT_ROLE_CHANGE)

    try:
        membership = await service.add_leader(db, club_id, user.id, data.email, data.role)
        return MembershipResponse.model_validate(membership)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("add leader", e) from e


# ============================================
# Membership
# ============================================


@router.post(
    "/{club_id}/join",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join Club",
)
async def join_club(
    club_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    await enforce_rate_limit(user.id, "club:membership", *RATE_LIMIT_MEMBERSHIP)

    try:
        membership = await service.join_club(db, club_id, user.id)
        return MembershipResponse.model_validate(membership)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("join club", e) from e


@router.delete("/{club_id}/join", response_model=MessageResponse, summary="Leave Club")
async def leave_club(
    club_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await enforce_rate_limit(user.id, "club:membership", *RATE_LIMIT_MEMBERSHIP)

    try:
        await service.leave_club(db, club_id, user.id)
        return MessageResponse(message="Left club successfully")
    except ClubServiceError as e:
        raise _handle_service_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("leave club", e) from e


@router.get("/{club_id}/members", response_model=ClubMemberListResponse, summary="List Members")
async def list_members(
    club_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClubMemberListResponse:
    """Members ordered president, vice president, officers, then members by join date."""
    try:
        rows = await service.list_members(db, club_id)
    except ClubServiceError as e:
        raise _handle_service_error(e) from e

    members = [
        ClubMemberItem(
            club_id=membership.club_id,
            user_id=membership.user_id,
            role=MemberRole(membership.role),
            joined_at=membership.joined_at,
            name=member.name,
            email=member.email,
            avatar_url=member.avatar_url,
        )
        for membership, member in rows
    ]
    return ClubMemberListResponse(members=members, count=len(members))

"""
Users Router

Profile endpoints for the signed-in user.

Endpoints:
- POST /users/sync - Create or refresh the caller's profile from their token
- GET /users/me - Get the caller's profile
- PATCH /users/me - Update editable profile fields
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.modules.users.repository import UserRepository
from app.modules.users.schemas import UserProfileResponse, UserProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _profile_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "USER_NOT_FOUND",
            "message": "No profile found. Call /users/sync after signing in.",
        },
    )


@router.post(
    "/sync",
    response_model=UserProfileResponse,
    summary="Sync Profile From Identity Provider",
)
async def sync_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfileResponse:
    """Create the caller's profile on first sign-in, refresh identity fields after."""
    try:
        profile = await UserRepository.upsert_from_identity(
            db,
            user_id=user.id,
            email=user.email,
            name=user.name or user.email.split("@")[0],
            avatar_url=user.avatar_url,
        )
    except IntegrityError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "EMAIL_IN_USE",
                "message": "This email is already linked to another account.",
            },
        ) from e
    return UserProfileResponse.model_validate(profile)


@router.get("/me", response_model=UserProfileResponse, summary="Get My Profile")
async def get_my_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfileResponse:
    profile = await UserRepository.get_by_id(db, user.id)
    if not profile:
        raise _profile_not_found()
    return UserProfileResponse.model_validate(profile)


@router.patch("/me", response_model=UserProfileResponse, summary="Update My Profile")
async def update_my_profile(
    data: UserProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfileResponse:
    profile = await UserRepository.get_by_id(db, user.id)
    if not profile:
        raise _profile_not_found()

    updated = await UserRepository.update_profile(
        db, profile, **data.model_dump(exclude_unset=True)
    )
    return UserProfileResponse.model_validate(updated)

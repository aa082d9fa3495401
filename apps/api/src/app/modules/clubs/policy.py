"""
Club Role Policy

Pure decision functions describing which membership and leadership
changes are legal and who may make them. No I/O: callers pass in the
state they loaded and get back a boolean or an explicit Denial.

Presidency changes hands only through claim and transfer. The generic
role assignment path never grants or removes the president role, which
keeps the single-president rule enforced in one place.
"""

import enum
from typing import Protocol
from uuid import UUID

from app.modules.clubs.models import LEADERSHIP_ROLES, MemberRole

# Roles a president may hand out through set_member_role
ASSIGNABLE_ROLES = frozenset({MemberRole.MEMBER, MemberRole.OFFICER, MemberRole.VICE_PRESIDENT})

# Roles that can be granted with add_leader
LEADER_GRANT_ROLES = frozenset({MemberRole.OFFICER, MemberRole.VICE_PRESIDENT})


class ClaimableClub(Protocol):
    is_claimed: bool


class Denial(str, enum.Enum):
    """Why a requested change is not allowed."""

    ALREADY_CLAIMED = "already_claimed"
    NOT_CLAIMED = "not_claimed"
    NOT_AUTHORIZED = "not_authorized"
    SELF_TARGET = "self_target"
    INVALID_ROLE = "invalid_role"


def can_claim(club: ClaimableClub) -> bool:
    return not club.is_claimed


def can_promote(acting_role: MemberRole | None) -> bool:
    return acting_role == MemberRole.PRESIDENT


def can_demote(
    acting_user_id: UUID,
    target_user_id: UUID,
    acting_role: MemberRole | None,
) -> bool:
    """A president may demote others, never themselves (they must transfer)."""
    return acting_role == MemberRole.PRESIDENT and acting_user_id != target_user_id


def can_transfer(acting_role: MemberRole | None) -> bool:
    return acting_role == MemberRole.PRESIDENT


def is_leader(role: MemberRole | None) -> bool:
    return role in LEADERSHIP_ROLES


def valid_target_role(role: MemberRole | str, *, allow_president: bool = False) -> bool:
    """
    Check that a role is a known club role that may be assigned here.

    Plain strings are accepted so raw input can be checked before parsing.
    President is only valid when the caller is the transfer path.
    """
    try:
        parsed = MemberRole(role)
    except ValueError:
        return False

    if parsed == MemberRole.PRESIDENT:
        return allow_president
    return parsed in ASSIGNABLE_ROLES


def check_claim(club: ClaimableClub) -> Denial | None:
    if not can_claim(club):
        return Denial.ALREADY_CLAIMED
    return None


def check_transfer(
    club: ClaimableClub,
    acting_user_id: UUID,
    target_user_id: UUID,
    acting_role: MemberRole | None,
) -> Denial | None:
    """Authority is checked before the self-target rule."""
    if not club.is_claimed:
        return Denial.NOT_CLAIMED
    if not can_transfer(acting_role):
        return Denial.NOT_AUTHORIZED
    if acting_user_id == target_user_id:
        return Denial.SELF_TARGET
    return None


def check_set_role(
    acting_user_id: UUID,
    target_user_id: UUID,
    acting_role: MemberRole | None,
    role: MemberRole | str,
) -> Denial | None:
    """
    Validate a president-invoked role change.

    Every role a president can assign is below president, so targeting
    yourself is always a self-demotion.
    """
    if not can_promote(acting_role):
        return Denial.NOT_AUTHORIZED
    if not valid_target_role(role):
        return Denial.INVALID_ROLE
    if not can_demote(acting_user_id, target_user_id, acting_role):
        return Denial.SELF_TARGET
    return None


def check_add_leader(
    acting_user_id: UUID,
    target_user_id: UUID,
    acting_role: MemberRole | None,
    role: MemberRole | str,
) -> Denial | None:
    if not can_promote(acting_role):
        return Denial.NOT_AUTHORIZED
    if not valid_target_role(role) or MemberRole(role) not in LEADER_GRANT_ROLES:
        return Denial.INVALID_ROLE
    if acting_user_id == target_user_id:
        return Denial.SELF_TARGET
    return None

"""
Unit tests for the clubs service layer.

These tests cover:
- Claiming (confirmation, single winner under concurrency)
- Leadership transfer and rollback of partial writes
- Role changes through the president-only path
- Adding leaders by email
- Join / leave rules
- Club catalogue operations
"""

import asyncio
from uuid import uuid4

import pytest

from app.modules.clubs.models import ClubCategory, MemberRole
from app.modules.clubs.service import (
    AdminRequiredError,
    AlreadyMemberError,
    ClaimNotConfirmedError,
    ClubAlreadyClaimedError,
    ClubNotClaimedError,
    ClubNotFoundError,
    DuplicateClubNameError,
    InvalidRoleError,
    LeadershipRequiredError,
    MembershipNotFoundError,
    NotPresidentError,
    PresidentCannotLeaveError,
    SelfDemotionError,
    SelfTransferError,
    TargetNotMemberError,
    UserNotFoundError,
    add_leader,
    claim_club,
    create_club,
    get_club_detail,
    join_club,
    leave_club,
    list_clubs,
    list_members,
    set_member_role,
    transfer_leadership,
    update_club_details,
    update_club_tags,
)
from app.modules.users.models import UserRole


class TestClaimClub:
    """Tests for claim_club."""

    @pytest.mark.asyncio
    async def test_claim_makes_caller_president(
        self, store, db, unclaimed_club, alice, assert_consistent
    ):
        club = await claim_club(db, unclaimed_club.id, alice.id, confirmed=True)

        assert club.is_claimed is True
        assert club.president_id == alice.id
        assert store.role_of(club, alice) == MemberRole.PRESIDENT
        assert store.member_count(club) == 1
        db.commit.assert_awaited_once()
        assert_consistent(club)

    @pytest.mark.asyncio
    async def test_claim_requires_confirmation(self, store, db, unclaimed_club, alice):
        with pytest.raises(ClaimNotConfirmedError) as exc_info:
            await claim_club(db, unclaimed_club.id, alice.id, confirmed=False)

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "NOT_CONFIRMED"
        assert unclaimed_club.is_claimed is False
        assert store.member_count(unclaimed_club) == 0

    @pytest.mark.asyncio
    async def test_claim_unknown_club(self, store, db, alice):
        with pytest.raises(ClubNotFoundError):
            await claim_club(db, uuid4(), alice.id, confirmed=True)

    @pytest.mark.asyncio
    async def test_claim_already_claimed_club(self, store, db, claimed_club, alice, carol):
        with pytest.raises(ClubAlreadyClaimedError) as exc_info:
            await claim_club(db, claimed_club.id, carol.id, confirmed=True)

        assert exc_info.value.status_code == 409
        assert claimed_club.president_id == alice.id
        assert store.role_of(claimed_club, carol) is None

    @pytest.mark.asyncio
    async def test_claim_without_profile(self, store, db, unclaimed_club, assert_consistent):
        """A signed-in user who never synced a profile cannot become president."""
        with pytest.raises(UserNotFoundError) as exc_info:
            await claim_club(db, unclaimed_club.id, uuid4(), confirmed=True)

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_code == "USER_NOT_FOUND"
        assert unclaimed_club.is_claimed is False
        assert store.member_count(unclaimed_club) == 0
        db.commit.assert_not_awaited()
        assert_consistent(unclaimed_club)

    @pytest.mark.asyncio
    async def test_claim_promotes_existing_membership(
        self, store, db, unclaimed_club, bob, assert_consistent
    ):
        """A member who claims is promoted in place, not added twice."""
        store.add_member(unclaimed_club, bob)

        await claim_club(db, unclaimed_club.id, bob.id, confirmed=True)

        assert store.member_count(unclaimed_club) == 1
        assert store.role_of(unclaimed_club, bob) == MemberRole.PRESIDENT
        assert_consistent(unclaimed_club)

    @pytest.mark.asyncio
    async def test_concurrent_claims_have_single_winner(
        self, store, unclaimed_club, new_session, assert_consistent
    ):
        claimants = [store.add_user(f"Student{i}") for i in range(5)]

        results = await asyncio.gather(
            *[
                claim_club(new_session(), unclaimed_club.id, user.id, confirmed=True)
                for user in claimants
            ],
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(isinstance(e, ClubAlreadyClaimedError) for e in losers)
        assert store.member_count(unclaimed_club) == 1
        assert_consistent(unclaimed_club)


class TestTransferLeadership:
    """Tests for transfer_leadership."""

    @pytest.mark.asyncio
    async def test_transfer_swaps_roles(
        self, store, db, claimed_club, alice, bob, assert_consistent
    ):
        before = store.member_count(claimed_club)

        club = await transfer_leadership(db, claimed_club.id, alice.id, bob.id)

        assert club.president_id == bob.id
        assert store.role_of(club, bob) == MemberRole.PRESIDENT
        assert store.role_of(club, alice) == MemberRole.OFFICER
        assert store.member_count(club) == before
        assert_consistent(club)

    @pytest.mark.asyncio
    async def test_self_transfer_rejected(self, store, db, claimed_club, alice):
        with pytest.raises(SelfTransferError):
            await transfer_leadership(db, claimed_club.id, alice.id, alice.id)

        assert claimed_club.president_id == alice.id
        assert store.role_of(claimed_club, alice) == MemberRole.PRESIDENT
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_president_cannot_transfer(self, store, db, claimed_club, alice, bob):
        with pytest.raises(NotPresidentError) as exc_info:
            await transfer_leadership(db, claimed_club.id, bob.id, alice.id)

        assert exc_info.value.status_code == 403
        assert claimed_club.president_id == alice.id

    @pytest.mark.asyncio
    async def test_unclaimed_club_cannot_transfer(self, store, db, unclaimed_club, alice, bob):
        with pytest.raises(ClubNotClaimedError):
            await transfer_leadership(db, unclaimed_club.id, alice.id, bob.id)

    @pytest.mark.asyncio
    async def test_target_must_be_member(self, store, db, claimed_club, alice, carol):
        with pytest.raises(TargetNotMemberError) as exc_info:
            await transfer_leadership(db, claimed_club.id, alice.id, carol.id)

        assert exc_info.value.status_code == 409
        assert claimed_club.president_id == alice.id

    @pytest.mark.asyncio
    async def test_partial_transfer_is_rolled_back(
        self, store, db, claimed_club, alice, bob, assert_consistent
    ):
        """If the target disappears mid-transfer, nothing from the transfer survives."""
        reassign = store.reassign_president

        async def reassign_then_target_leaves(session, club_id, from_id, to_id):
            moved = await reassign(session, club_id, from_id, to_id)
            store.memberships.pop((club_id, to_id))
            return moved

        store.reassign_president = reassign_then_target_leaves

        with pytest.raises(TargetNotMemberError):
            await transfer_leadership(db, claimed_club.id, alice.id, bob.id)

        db.rollback.assert_awaited()
        assert claimed_club.president_id == alice.id
        assert store.role_of(claimed_club, alice) == MemberRole.PRESIDENT
        assert_consistent(claimed_club)


class TestSetMemberRole:
    """Tests for set_member_role."""

    @pytest.mark.asyncio
    async def test_president_promotes_member(self, store, db, claimed_club, alice, bob):
        membership = await set_member_role(
            db, claimed_club.id, alice.id, bob.id, MemberRole.VICE_PRESIDENT
        )

        assert membership.role == MemberRole.VICE_PRESIDENT
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_president_demotes_officer(self, store, db, claimed_club, alice, bob):
        store.memberships[(claimed_club.id, bob.id)].role = MemberRole.OFFICER

        await set_member_role(db, claimed_club.id, alice.id, bob.id, "member")

        assert store.role_of(claimed_club, bob) == MemberRole.MEMBER

    @pytest.mark.asyncio
    async def test_cannot_grant_president(
        self, store, db, claimed_club, alice, bob, assert_consistent
    ):
        with pytest.raises(InvalidRoleError) as exc_info:
            await set_member_role(db, claimed_club.id, alice.id, bob.id, MemberRole.PRESIDENT)

        assert exc_info.value.error_code == "INVALID_ROLE"
        assert store.role_of(claimed_club, bob) == MemberRole.MEMBER
        assert_consistent(claimed_club)

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, store, db, claimed_club, alice, bob):
        with pytest.raises(InvalidRoleError):
            await set_member_role(db, claimed_club.id, alice.id, bob.id, "captain")

    @pytest.mark.asyncio
    async def test_president_cannot_demote_self(
        self, store, db, claimed_club, alice, assert_consistent
    ):
        with pytest.raises(SelfDemotionError):
            await set_member_role(db, claimed_club.id, alice.id, alice.id, MemberRole.OFFICER)

        assert store.role_of(claimed_club, alice) == MemberRole.PRESIDENT
        assert_consistent(claimed_club)

    @pytest.mark.asyncio
    async def test_vice_president_cannot_change_roles(
        self, store, db, claimed_club, bob, carol
    ):
        store.memberships[(claimed_club.id, bob.id)].role = MemberRole.VICE_PRESIDENT
        store.add_member(claimed_club, carol)

        with pytest.raises(NotPresidentError):
            await set_member_role(db, claimed_club.id, bob.id, carol.id, MemberRole.OFFICER)

        assert store.role_of(claimed_club, carol) == MemberRole.MEMBER

    @pytest.mark.asyncio
    async def test_target_not_member(self, store, db, claimed_club, alice, carol):
        with pytest.raises(MembershipNotFoundError):
            await set_member_role(db, claimed_club.id, alice.id, carol.id, MemberRole.OFFICER)

        db.rollback.assert_awaited()


class TestAddLeader:
    """Tests for add_leader."""

    @pytest.mark.asyncio
    async def test_adds_non_member_as_officer(self, store, db, claimed_club, alice, carol):
        membership = await add_leader(
            db, claimed_club.id, alice.id, carol.email, MemberRole.OFFICER
        )

        assert membership.role == MemberRole.OFFICER
        assert store.role_of(claimed_club, carol) == MemberRole.OFFICER

    @pytest.mark.asyncio
    async def test_updates_existing_member(self, store, db, claimed_club, alice, bob):
        await add_leader(db, claimed_club.id, alice.id, bob.email.upper(), "vice_president")

        assert store.role_of(claimed_club, bob) == MemberRole.VICE_PRESIDENT
        assert store.member_count(claimed_club) == 2

    @pytest.mark.asyncio
    async def test_unknown_email(self, store, db, claimed_club, alice):
        with pytest.raises(UserNotFoundError):
            await add_leader(db, claimed_club.id, alice.id, "ghost@school.test", "officer")

    @pytest.mark.asyncio
    async def test_member_role_is_not_a_leader_role(self, store, db, claimed_club, alice, bob):
        with pytest.raises(InvalidRoleError):
            await add_leader(db, claimed_club.id, alice.id, bob.email, MemberRole.MEMBER)

    @pytest.mark.asyncio
    async def test_president_cannot_add_self(
        self, store, db, claimed_club, alice, assert_consistent
    ):
        with pytest.raises(SelfDemotionError):
            await add_leader(db, claimed_club.id, alice.id, alice.email, MemberRole.OFFICER)

        assert_consistent(claimed_club)

    @pytest.mark.asyncio
    async def test_only_president_adds_leaders(self, store, db, claimed_club, bob, carol):
        with pytest.raises(NotPresidentError):
            await add_leader(db, claimed_club.id, bob.id, carol.email, MemberRole.OFFICER)


class TestJoinLeave:
    """Tests for join_club and leave_club."""

    @pytest.mark.asyncio
    async def test_join_creates_member(self, store, db, claimed_club, carol):
        membership = await join_club(db, claimed_club.id, carol.id)

        assert membership.role == MemberRole.MEMBER
        assert store.member_count(claimed_club) == 3

    @pytest.mark.asyncio
    async def test_join_twice(self, store, db, claimed_club, bob):
        with pytest.raises(AlreadyMemberError) as exc_info:
            await join_club(db, claimed_club.id, bob.id)

        assert exc_info.value.status_code == 409
        assert store.member_count(claimed_club) == 2

    @pytest.mark.asyncio
    async def test_join_unknown_club(self, store, db, carol):
        with pytest.raises(ClubNotFoundError):
            await join_club(db, uuid4(), carol.id)

    @pytest.mark.asyncio
    async def test_join_without_profile(self, store, db, claimed_club):
        with pytest.raises(UserNotFoundError):
            await join_club(db, claimed_club.id, uuid4())

    @pytest.mark.asyncio
    async def test_leave_removes_member(self, store, db, claimed_club, bob):
        await leave_club(db, claimed_club.id, bob.id)

        assert store.role_of(claimed_club, bob) is None
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_president_cannot_leave(self, store, db, claimed_club, alice):
        with pytest.raises(PresidentCannotLeaveError) as exc_info:
            await leave_club(db, claimed_club.id, alice.id)

        assert exc_info.value.error_code == "IS_PRESIDENT"
        assert store.member_count(claimed_club) == 2
        assert claimed_club.president_id == alice.id

    @pytest.mark.asyncio
    async def test_leave_when_not_member(self, store, db, claimed_club, carol):
        with pytest.raises(MembershipNotFoundError) as exc_info:
            await leave_club(db, claimed_club.id, carol.id)

        assert exc_info.value.status_code == 404


class TestClubCatalogue:
    """Tests for creating, listing and editing clubs."""

    @pytest.mark.asyncio
    async def test_admin_creates_unclaimed_club(self, store, db):
        admin = store.add_user("Admin", role=UserRole.ADMIN)

        club = await create_club(
            db,
            admin.id,
            name="Film Club",
            description="Weekly screenings",
            category=ClubCategory.ARTS,
            tags=["film", "movies"],
        )

        assert club.is_claimed is False
        assert club.president_id is None
        assert club.tag_names == ["film", "movies"]
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_student_cannot_create_club(self, store, db, alice):
        with pytest.raises(AdminRequiredError):
            await create_club(
                db, alice.id, name="Film Club", description="x", category=ClubCategory.ARTS
            )

    @pytest.mark.asyncio
    async def test_duplicate_club_name(self, store, db, claimed_club):
        admin = store.add_user("Admin", role=UserRole.ADMIN)

        with pytest.raises(DuplicateClubNameError):
            await create_club(
                db,
                admin.id,
                name=claimed_club.name.upper(),
                description="x",
                category=ClubCategory.ACADEMIC,
            )

    @pytest.mark.asyncio
    async def test_list_is_personalised(self, store, db, claimed_club, unclaimed_club, bob):
        rows = await list_clubs(db, viewer_id=bob.id)

        roles = {club.id: role for club, _, role in rows}
        assert roles[claimed_club.id] == MemberRole.MEMBER
        assert roles[unclaimed_club.id] is None

    @pytest.mark.asyncio
    async def test_list_filters_unclaimed(self, store, db, claimed_club, unclaimed_club):
        rows = await list_clubs(db, is_claimed=False)

        assert [club.id for club, _, _ in rows] == [unclaimed_club.id]

    @pytest.mark.asyncio
    async def test_detail_includes_member_count(self, store, db, claimed_club, alice):
        club, count, president, viewer_role = await get_club_detail(db, claimed_club.id)

        assert club.id == claimed_club.id
        assert count == 2
        assert president is alice
        assert viewer_role is None

    @pytest.mark.asyncio
    async def test_detail_reports_viewer_role(self, store, db, claimed_club, bob, carol):
        _, _, _, bob_role = await get_club_detail(db, claimed_club.id, viewer_id=bob.id)
        _, _, _, carol_role = await get_club_detail(db, claimed_club.id, viewer_id=carol.id)

        assert bob_role == MemberRole.MEMBER
        assert carol_role is None

    @pytest.mark.asyncio
    async def test_unclaimed_detail_has_no_president(self, store, db, unclaimed_club):
        _, count, president, _ = await get_club_detail(db, unclaimed_club.id)

        assert count == 0
        assert president is None

    @pytest.mark.asyncio
    async def test_members_listed_president_first(
        self, store, db, claimed_club, alice, bob, carol
    ):
        store.add_member(claimed_club, carol, MemberRole.OFFICER)

        rows = await list_members(db, claimed_club.id)

        assert [user.id for _, user in rows] == [alice.id, carol.id, bob.id]

    @pytest.mark.asyncio
    async def test_officer_can_edit_details(self, store, db, claimed_club, bob):
        store.memberships[(claimed_club.id, bob.id)].role = MemberRole.OFFICER

        club = await update_club_details(
            db,
            claimed_club.id,
            bob.id,
            description="New description",
            category=ClubCategory.ACADEMIC,
        )

        assert club.description == "New description"
        assert club.is_claimed is True

    @pytest.mark.asyncio
    async def test_member_cannot_edit_tags(self, store, db, claimed_club, bob):
        with pytest.raises(LeadershipRequiredError):
            await update_club_tags(db, claimed_club.id, bob.id, ["chess"])

    @pytest.mark.asyncio
    async def test_president_replaces_tags(self, store, db, claimed_club, alice):
        tags = await update_club_tags(db, claimed_club.id, alice.id, ["strategy", "chess"])

        assert tags == ["chess", "strategy"]


class TestLeadershipScenario:
    """Full claim, join, promote, transfer and leave sequence."""

    @pytest.mark.asyncio
    async def test_claim_join_promote_transfer_and_back(
        self, store, unclaimed_club, alice, bob, new_session, assert_consistent
    ):
        club = unclaimed_club

        await claim_club(new_session(), club.id, alice.id, confirmed=True)
        assert club.is_claimed and club.president_id == alice.id
        assert store.role_of(club, alice) == MemberRole.PRESIDENT

        await join_club(new_session(), club.id, bob.id)
        assert store.role_of(club, bob) == MemberRole.MEMBER

        await set_member_role(new_session(), club.id, alice.id, bob.id, "officer")
        assert store.role_of(club, bob) == MemberRole.OFFICER

        await transfer_leadership(new_session(), club.id, alice.id, bob.id)
        assert club.president_id == bob.id
        assert store.role_of(club, alice) == MemberRole.OFFICER
        assert store.role_of(club, bob) == MemberRole.PRESIDENT

        with pytest.raises(PresidentCannotLeaveError):
            await leave_club(new_session(), club.id, bob.id)

        await transfer_leadership(new_session(), club.id, bob.id, alice.id)
        assert club.president_id == alice.id
        assert store.role_of(club, alice) == MemberRole.PRESIDENT
        assert store.role_of(club, bob) == MemberRole.OFFICER
        assert store.member_count(club) == 2
        assert_consistent(club)

"""
Fixtures for clubs tests.

FakeClubStore stands in for the clubs repository module. Writes are applied
immediately and journaled per session so FakeSession.rollback() restores the
previous state, and the single-president index is enforced the way the
database enforces it.
"""

import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.modules.clubs.models import ClubCategory, MemberRole
from app.modules.users.models import UserRole


class FakeIntegrityError(Exception):
    """Raised where PostgreSQL would reject the row with a unique violation."""


class FakeSession:
    """An AsyncSession double whose rollback undoes the store writes it made."""

    def __init__(self):
        self._undo = []
        self.commit = AsyncMock(side_effect=self._commit)
        self.rollback = AsyncMock(side_effect=self._rollback)

    def record(self, undo):
        self._undo.append(undo)

    async def _commit(self):
        self._undo.clear()

    async def _rollback(self):
        while self._undo:
            self._undo.pop()()


class FakeClubStore:
    """In-memory replacement for app.modules.clubs.repository."""

    def __init__(self):
        self.clubs = {}
        self.users = {}
        self.memberships = {}
        self.user_repository = MagicMock()
        self.user_repository.get_by_id = AsyncMock(side_effect=self._get_user)
        self.user_repository.get_by_email = AsyncMock(side_effect=self._get_user_by_email)

    # ---- seeding helpers ----

    def add_user(self, name, role=UserRole.STUDENT):
        user = SimpleNamespace(
            id=uuid4(),
            email=f"{name.lower()}@school.test",
            name=name,
            avatar_url=None,
            role=role,
            is_admin=role == UserRole.ADMIN,
        )
        self.users[user.id] = user
        return user

    def add_club(self, name="Chess Club", president=None):
        now = datetime.now(UTC)
        club = SimpleNamespace(
            id=uuid4(),
            name=name,
            description=f"{name} description",
            category=ClubCategory.HOBBY,
            image_url=None,
            meeting_time=None,
            location=None,
            is_claimed=president is not None,
            president_id=president.id if president else None,
            tag_names=[],
            created_at=now,
            updated_at=now,
        )
        self.clubs[club.id] = club
        if president is not None:
            self.add_member(club, president, MemberRole.PRESIDENT)
        return club

    def add_member(self, club, user, role=MemberRole.MEMBER):
        membership = SimpleNamespace(
            id=uuid4(),
            club_id=club.id,
            user_id=user.id,
            role=role,
            joined_at=datetime.now(UTC),
        )
        self.memberships[(club.id, user.id)] = membership
        return membership

    def role_of(self, club, user):
        membership = self.memberships.get((club.id, user.id))
        return membership.role if membership else None

    def member_count(self, club):
        return sum(1 for club_id, _ in self.memberships if club_id == club.id)

    def president_rows(self, club):
        return [
            m
            for (club_id, _), m in self.memberships.items()
            if club_id == club.id and m.role == MemberRole.PRESIDENT
        ]

    # ---- user repository ----

    async def _get_user(self, db, user_id):
        return self.users.get(user_id)

    async def _get_user_by_email(self, db, email):
        for user in self.users.values():
            if user.email.lower() == email.lower():
                return user
        return None

    # ---- club repository ----

    async def get_club(self, db, club_id):
        # Yield so concurrent callers interleave between read and write
        await asyncio.sleep(0)
        return self.clubs.get(club_id)

    async def get_club_by_name(self, db, name):
        for club in self.clubs.values():
            if club.name.lower() == name.lower():
                return club
        return None

    async def create_club(self, db, *, name, tags=None, **fields):
        club = self.add_club(name)
        for key, value in fields.items():
            setattr(club, key, value)
        club.tag_names = sorted(tags or [])
        db.record(lambda: self.clubs.pop(club.id, None))
        return club

    async def list_clubs(self, db, *, category=None, is_claimed=None):
        rows = []
        for club in self.clubs.values():
            if category is not None and club.category != category:
                continue
            if is_claimed is not None and club.is_claimed != is_claimed:
                continue
            rows.append((club, self.member_count(club)))
        return rows

    async def count_members(self, db, club_id):
        return self.member_count(self.clubs[club_id])

    async def update_club_details(self, db, club, **fields):
        previous = {key: getattr(club, key) for key in fields}
        for key, value in fields.items():
            setattr(club, key, value)
        db.record(lambda: [setattr(club, k, v) for k, v in previous.items()])
        return club

    async def claim_club(self, db, club_id, user_id):
        club = self.clubs.get(club_id)
        if club is None or club.is_claimed:
            return False
        club.is_claimed = True
        club.president_id = user_id
        db.record(lambda: self._set_leadership(club, False, None))
        return True

    async def reassign_president(self, db, club_id, from_user_id, to_user_id):
        club = self.clubs.get(club_id)
        if club is None or not club.is_claimed or club.president_id != from_user_id:
            return False
        club.president_id = to_user_id
        db.record(lambda: self._set_leadership(club, True, from_user_id))
        return True

    def _set_leadership(self, club, is_claimed, president_id):
        club.is_claimed = is_claimed
        club.president_id = president_id

    # ---- membership repository ----

    async def get_membership(self, db, club_id, user_id):
        return self.memberships.get((club_id, user_id))

    async def get_user_memberships(self, db, user_id):
        return {club_id: m.role for (club_id, uid), m in self.memberships.items() if uid == user_id}

    async def list_members(self, db, club_id):
        rows = [
            (m, self.users[uid])
            for (cid, uid), m in self.memberships.items()
            if cid == club_id
        ]
        return sorted(rows, key=lambda row: (row[0].role.rank, row[0].joined_at))

    def _check_one_president(self, club_id, user_id, role):
        if role != MemberRole.PRESIDENT:
            return
        for (cid, uid), m in self.memberships.items():
            if cid == club_id and uid != user_id and m.role == MemberRole.PRESIDENT:
                raise FakeIntegrityError("uq_club_memberships_one_president")

    def _set_role(self, db, membership, role):
        previous = membership.role
        membership.role = role
        db.record(lambda: setattr(membership, "role", previous))

    def _insert(self, db, club_id, user_id, role):
        self._check_one_president(club_id, user_id, role)
        membership = SimpleNamespace(
            id=uuid4(), club_id=club_id, user_id=user_id, role=role, joined_at=datetime.now(UTC)
        )
        self.memberships[(club_id, user_id)] = membership
        db.record(lambda: self.memberships.pop((club_id, user_id), None))
        return membership

    async def add_membership(self, db, club_id, user_id, role=MemberRole.MEMBER):
        if (club_id, user_id) in self.memberships:
            return None
        return self._insert(db, club_id, user_id, role)

    async def upsert_membership(self, db, club_id, user_id, role, *, protect_president=False):
        membership = self.memberships.get((club_id, user_id))
        if membership is None:
            return self._insert(db, club_id, user_id, role)
        if protect_president and membership.role == MemberRole.PRESIDENT:
            return None
        self._check_one_president(club_id, user_id, role)
        self._set_role(db, membership, role)
        return membership

    async def update_membership_role(
        self,
        db,
        club_id,
        user_id,
        role,
        *,
        protect_president=True,
        acting_president_id=None,
    ):
        membership = self.memberships.get((club_id, user_id))
        if membership is None:
            return None
        if protect_president and membership.role == MemberRole.PRESIDENT:
            return None
        if acting_president_id is not None:
            if self.clubs[club_id].president_id != acting_president_id:
                return None
        self._check_one_president(club_id, user_id, role)
        self._set_role(db, membership, role)
        return membership

    async def delete_membership(self, db, club_id, user_id):
        membership = self.memberships.get((club_id, user_id))
        if membership is None or membership.role == MemberRole.PRESIDENT:
            return False
        del self.memberships[(club_id, user_id)]
        db.record(lambda: self.memberships.__setitem__((club_id, user_id), membership))
        return True

    async def replace_tags(self, db, club_id, tags):
        club = self.clubs[club_id]
        previous = club.tag_names
        club.tag_names = sorted(tags)
        db.record(lambda: setattr(club, "tag_names", previous))
        return sorted(tags)


def assert_leadership_consistent(store, club):
    """A club is claimed iff it has a president, whose membership is the only president row."""
    presidents = store.president_rows(club)
    assert club.is_claimed == (club.president_id is not None)
    assert len(presidents) <= 1
    if club.is_claimed:
        assert len(presidents) == 1
        assert presidents[0].user_id == club.president_id
    else:
        assert presidents == []


@pytest.fixture
def store():
    """An in-memory clubs store patched into the clubs service."""
    fake = FakeClubStore()
    with (
        patch("app.modules.clubs.service.repository", fake),
        patch("app.modules.clubs.service.UserRepository", fake.user_repository),
    ):
        yield fake


@pytest.fixture
def db():
    """A session double that journals writes for rollback."""
    return FakeSession()


@pytest.fixture
def alice(store):
    return store.add_user("Alice")


@pytest.fixture
def bob(store):
    return store.add_user("Bob")


@pytest.fixture
def carol(store):
    return store.add_user("Carol")


@pytest.fixture
def unclaimed_club(store):
    return store.add_club("Robotics Club")


@pytest.fixture
def claimed_club(store, alice, bob):
    """A club led by alice with bob as a plain member."""
    club = store.add_club("Debate Society", president=alice)
    store.add_member(club, bob)
    return club


@pytest.fixture
def new_session():
    """Factory for independent sessions, one per concurrent caller."""
    return FakeSession


@pytest.fixture
def assert_consistent(store):
    def check(club):
        assert_leadership_consistent(store, club)

    return check

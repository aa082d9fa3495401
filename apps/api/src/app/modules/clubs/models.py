"""
Club Models

Database models for clubs, club memberships and club tags.

Invariants enforced at the database level:
- a club is claimed exactly when it has a president (check constraint)
- one membership row per (club, user)
- at most one president membership per club (partial unique index)
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.modules.shared import BaseModel


class ClubCategory(str, enum.Enum):
    """Club categories."""

    ACADEMIC = "academic"
    ARTS = "arts"
    SPORTS = "sports"
    TECHNOLOGY = "technology"
    SERVICE = "service"
    HOBBY = "hobby"


class MemberRole(str, enum.Enum):
    """Role of a user inside a club."""

    MEMBER = "member"
    OFFICER = "officer"
    VICE_PRESIDENT = "vice_president"
    PRESIDENT = "president"

    @property
    def rank(self) -> int:
        """Sort rank, president first."""
        return ROLE_RANK[self]

    @property
    def is_leadership(self) -> bool:
        return self in LEADERSHIP_ROLES


ROLE_RANK: dict[MemberRole, int] = {
    MemberRole.PRESIDENT: 1,
    MemberRole.VICE_PRESIDENT: 2,
    MemberRole.OFFICER: 3,
    MemberRole.MEMBER: 4,
}

LEADERSHIP_ROLES = frozenset(
    {MemberRole.PRESIDENT, MemberRole.VICE_PRESIDENT, MemberRole.OFFICER}
)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Club(BaseModel):
    """
    A school club.

    Created unclaimed. Becomes claimed exactly once, when its first
    president claims it; president_id may change afterwards through a
    leadership transfer but is never cleared.
    """

    __tablename__ = "clubs"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[ClubCategory] = mapped_column(
        ENUM(
            ClubCategory,
            name="club_category",
            create_type=True,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meeting_time: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Leadership
    is_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # ON DELETE RESTRICT: the president must transfer before their account can go
    president_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
    )

    # Relationships
    memberships: Mapped[list["ClubMembership"]] = relationship(
        "ClubMembership",
        back_populates="club",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags: Mapped[list["ClubTag"]] = relationship(
        "ClubTag",
        back_populates="club",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ClubTag.tag",
    )

    __table_args__ = (
        CheckConstraint(
            "is_claimed = (president_id IS NOT NULL)",
            name="ck_clubs_claimed_has_president",
        ),
        Index("ix_clubs_category", "category"),
        Index("ix_clubs_is_claimed", "is_claimed"),
        Index("ix_clubs_president_id", "president_id"),
    )

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, name={self.name}, claimed={self.is_claimed})>"

    @property
    def tag_names(self) -> list[str]:
        return [t.tag for t in self.tags]


class ClubMembership(Base):
    """
    A user's membership in a club, carrying their club role.

    The president row must always match Club.president_id.
    """

    __tablename__ = "club_memberships"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    club_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[MemberRole] = mapped_column(
        ENUM(
            MemberRole,
            name="member_role",
            create_type=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    club: Mapped["Club"] = relationship("Club", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("club_id", "user_id", name="uq_club_memberships_club_user"),
        Index("ix_club_memberships_user_id", "user_id"),
        Index(
            "uq_club_memberships_one_president",
            "club_id",
            unique=True,
            postgresql_where=text("role = 'president'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ClubMembership(club_id={self.club_id}, user_id={self.user_id}, "
            f"role={self.role.value})>"
        )


class ClubTag(Base):
    """Searchable tag attached to a club."""

    __tablename__ = "club_tags"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    club_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
    )
    tag: Mapped[str] = mapped_column(String(30), nullable=False)

    club: Mapped["Club"] = relationship("Club", back_populates="tags")

    __table_args__ = (
        UniqueConstraint("club_id", "tag", name="uq_club_tags_club_tag"),
        Index("ix_club_tags_tag", "tag"),
    )

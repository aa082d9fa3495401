"""create users, clubs, memberships, tags and posts

Revision ID: a7c3e91f2b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration:
1. Creates the user_role, club_category and member_role enum types
2. Creates users (id is the identity provider subject, not generated)
3. Creates clubs with the claimed/president consistency check
4. Creates club_memberships with one row per (club, user) and a partial
   unique index allowing a single president per club
5. Creates club_tags and posts
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e91f2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


user_role_enum = postgresql.ENUM(
    "student", "sponsor", "admin", name="user_role", create_type=False
)
club_category_enum = postgresql.ENUM(
    "academic",
    "arts",
    "sports",
    "technology",
    "service",
    "hobby",
    name="club_category",
    create_type=False,
)
member_role_enum = postgresql.ENUM(
    "member",
    "officer",
    "vice_president",
    "president",
    name="member_role",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create the club membership schema."""
    bind = op.get_bind()
    user_role_enum.create(bind, checkfirst=True)
    club_category_enum.create(bind, checkfirst=True)
    member_role_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("role", user_role_enum, nullable=False, server_default="student"),
        sa.Column("grade", sa.String(length=20), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "clubs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", club_category_enum, nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("meeting_time", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("is_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("president_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.ForeignKeyConstraint(
            ["president_id"], ["users.id"], name="fk_clubs_president_id", ondelete="RESTRICT"
        ),
        sa.CheckConstraint(
            "is_claimed = (president_id IS NOT NULL)",
            name="ck_clubs_claimed_has_president",
        ),
    )
    op.create_index("ix_clubs_category", "clubs", ["category"])
    op.create_index("ix_clubs_is_claimed", "clubs", ["is_claimed"])
    op.create_index("ix_clubs_president_id", "clubs", ["president_id"])

    op.create_table(
        "club_memberships",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("club_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", member_role_enum, nullable=False, server_default="member"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("club_id", "user_id", name="uq_club_memberships_club_user"),
    )
    op.create_index("ix_club_memberships_user_id", "club_memberships", ["user_id"])
    op.create_index(
        "uq_club_memberships_one_president",
        "club_memberships",
        ["club_id"],
        unique=True,
        postgresql_where=sa.text("role = 'president'"),
    )

    op.create_table(
        "club_tags",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("club_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tag", sa.String(length=30), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("club_id", "tag", name="uq_club_tags_club_tag"),
    )
    op.create_index("ix_club_tags_tag", "club_tags", ["tag"])

    op.create_table(
        "posts",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("club_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_posts_club_id_created_at", "posts", ["club_id", "created_at"])
    op.create_index("ix_posts_user_id", "posts", ["user_id"])


def downgrade() -> None:
    """Drop the club membership schema."""
    op.drop_index("ix_posts_user_id", table_name="posts")
    op.drop_index("ix_posts_club_id_created_at", table_name="posts")
    op.drop_table("posts")

    op.drop_index("ix_club_tags_tag", table_name="club_tags")
    op.drop_table("club_tags")

    op.drop_index("uq_club_memberships_one_president", table_name="club_memberships")
    op.drop_index("ix_club_memberships_user_id", table_name="club_memberships")
    op.drop_table("club_memberships")

    op.drop_index("ix_clubs_president_id", table_name="clubs")
    op.drop_index("ix_clubs_is_claimed", table_name="clubs")
    op.drop_index("ix_clubs_category", table_name="clubs")
    op.drop_table("clubs")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    member_role_enum.drop(bind, checkfirst=True)
    club_category_enum.drop(bind, checkfirst=True)
    user_role_enum.drop(bind, checkfirst=True)

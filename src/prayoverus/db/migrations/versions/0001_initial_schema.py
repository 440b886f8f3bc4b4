"""Initial schema: users, prayers, support, comments, groups

Learn: The idempotency key column and its (user_id, idempotency_key) unique
constraint ship in the first revision, because at-most-once prayer creation
depends on the database rejecting concurrent duplicates.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("profile_image_url", sa.String(500), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "prayers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ongoing"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("idempotency_key", sa.String(100), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "user_id", "idempotency_key", name="uq_prayers_user_idempotency_key"
        ),
    )
    op.create_index(
        "ix_prayers_public_created", "prayers", ["is_public", "created_at"]
    )

    op.create_table(
        "prayer_support",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "prayer_id",
            sa.Uuid(),
            sa.ForeignKey("prayers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        *_timestamps("created_at"),
        sa.UniqueConstraint("prayer_id", "user_id", "type", name="uq_prayer_support"),
    )

    op.create_table(
        "prayer_comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "prayer_id",
            sa.Uuid(),
            sa.ForeignKey("prayers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps("created_at"),
    )
    op.create_index(
        "ix_prayer_comments_prayer_created",
        "prayer_comments",
        ["prayer_id", "created_at"],
    )

    op.create_table(
        "prayer_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column(
            "created_by",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "group_id",
            sa.Uuid(),
            sa.ForeignKey("prayer_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        *_timestamps("joined_at"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members"),
    )


def downgrade() -> None:
    op.drop_table("group_members")
    op.drop_table("prayer_groups")
    op.drop_index("ix_prayer_comments_prayer_created", table_name="prayer_comments")
    op.drop_table("prayer_comments")
    op.drop_table("prayer_support")
    op.drop_index("ix_prayers_public_created", table_name="prayers")
    op.drop_table("prayers")
    op.drop_table("users")

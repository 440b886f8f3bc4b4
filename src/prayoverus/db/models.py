"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- User IDs are the identity provider's subject string (not generated here)
- Everything else uses UUID primary keys via the portable `Uuid` type, so the
  same models run on Postgres and on SQLite in tests
- Timestamps default on the Python side, so they're populated right after
  flush without a refresh round-trip (important for async sessions)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A person using the app.

    Learn: Rows are upserted from token claims on every authenticated
    request, so profile changes at the identity provider flow through
    without a separate sync job.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    prayers: Mapped[list["Prayer"]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
        passive_deletes=True,
    )


# ══════════════════════════════════════════════════════════════
# Prayers, support, comments
# ══════════════════════════════════════════════════════════════


class Prayer(Base):
    """A prayer request.

    Learn: idempotency_key is the client-generated token from the mobile
    submit flow. The (user_id, idempotency_key) unique constraint is what
    guarantees at-most-once creation even when two retries race past the
    application-level lookup.
    """

    __tablename__ = "prayers"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_prayers_user_idempotency_key"),
        Index("ix_prayers_public_created", "is_public", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="ongoing"
    )  # ongoing, answered
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    answered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship(back_populates="prayers")
    supports: Mapped[list["PrayerSupport"]] = relationship(
        back_populates="prayer", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments: Mapped[list["PrayerComment"]] = relationship(
        back_populates="prayer", cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PrayerSupport(Base):
    """Someone praying for / hearting a prayer. One row per (prayer, user, type)."""

    __tablename__ = "prayer_support"
    __table_args__ = (
        UniqueConstraint("prayer_id", "user_id", "type", name="uq_prayer_support"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    prayer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("prayers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # prayer, heart
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    prayer: Mapped["Prayer"] = relationship(back_populates="supports")


class PrayerComment(Base):
    __tablename__ = "prayer_comments"
    __table_args__ = (
        Index("ix_prayer_comments_prayer_created", "prayer_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    prayer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("prayers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    prayer: Mapped["Prayer"] = relationship(back_populates="comments")


# ══════════════════════════════════════════════════════════════
# Groups
# ══════════════════════════════════════════════════════════════


class PrayerGroup(Base):
    """A prayer group. The creator is auto-joined as admin."""

    __tablename__ = "prayer_groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_by: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    members: Mapped[list["GroupMember"]] = relationship(
        back_populates="group", cascade="all, delete-orphan",
        passive_deletes=True,
    )


class GroupMember(Base):
    """Group membership — links users to groups with a role."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("prayer_groups.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="member"
    )  # admin, member
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    group: Mapped["PrayerGroup"] = relationship(back_populates="members")

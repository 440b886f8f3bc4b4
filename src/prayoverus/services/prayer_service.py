"""Prayer service — prayers, support and comments.

Learn: Routes translate HTTP to these calls; every mutating method commits
before returning, so by the time a route broadcasts an event the change is
already durable.

Idempotent creation works in two layers:
1. Look up (user_id, idempotency_key): a retry finds the first prayer
2. The unique constraint catches two retries that race past step 1; the
   loser rolls back and returns the winner's row

Either way the caller learns whether *this* call created the prayer, which
is what decides whether a `new_prayer` event goes out.
"""

import uuid
from datetime import datetime, timezone
from typing import NamedTuple, Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.db.models import Prayer, PrayerComment, PrayerSupport, User

logger = structlog.get_logger()


class PrayerNotFoundError(Exception):
    """Prayer missing, or not visible/owned by the caller."""
    pass


class DuplicateSupportError(Exception):
    """The user already gave this type of support to this prayer."""
    pass


class SupportNotFoundError(Exception):
    pass


class PrayerWithStats(NamedTuple):
    prayer: Prayer
    user: Optional[User]
    support_count: int
    comment_count: int


class CommentWithUser(NamedTuple):
    comment: PrayerComment
    user: Optional[User]


def _support_count():
    return (
        select(func.count(PrayerSupport.id))
        .where(PrayerSupport.prayer_id == Prayer.id)
        .correlate(Prayer)
        .scalar_subquery()
    )


def _comment_count():
    return (
        select(func.count(PrayerComment.id))
        .where(PrayerComment.prayer_id == Prayer.id)
        .correlate(Prayer)
        .scalar_subquery()
    )


class PrayerService:
    """Business logic for prayer CRUD, support and comments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Create ──────────────────────────────────────────

    async def create_prayer(
        self,
        user_id: str,
        title: str,
        content: str,
        is_public: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> tuple[Prayer, bool]:
        """Create a prayer, or return the one already created under this key.

        Returns (prayer, created). created is False when the key was seen before.
        """
        if idempotency_key:
            existing = await self._find_by_key(user_id, idempotency_key)
            if existing:
                logger.info(
                    "prayer.duplicate_suppressed",
                    prayer_id=str(existing.id),
                    idempotency_key=idempotency_key,
                )
                return existing, False

        prayer = Prayer(
            user_id=user_id,
            title=title,
            content=content,
            is_public=is_public,
            idempotency_key=idempotency_key,
            answered_at=None,
        )
        self.db.add(prayer)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if not idempotency_key:
                raise
            existing = await self._find_by_key(user_id, idempotency_key)
            if existing is None:
                raise
            logger.info(
                "prayer.duplicate_race_resolved",
                prayer_id=str(existing.id),
                idempotency_key=idempotency_key,
            )
            return existing, False

        logger.info(
            "prayer.created",
            prayer_id=str(prayer.id),
            user_id=user_id,
            is_public=is_public,
        )
        return prayer, True

    async def _find_by_key(self, user_id: str, key: str) -> Optional[Prayer]:
        result = await self.db.execute(
            select(Prayer).where(
                Prayer.user_id == user_id,
                Prayer.idempotency_key == key,
            )
        )
        return result.scalars().first()

    # ─── Read ────────────────────────────────────────────

    async def get_prayer(self, prayer_id: uuid.UUID) -> Optional[Prayer]:
        return await self.db.get(Prayer, prayer_id)

    async def get_visible_prayer(
        self, prayer_id: uuid.UUID, viewer_id: str
    ) -> PrayerWithStats:
        """Single-record fetch used by the detail/paging view.

        Private prayers are only visible to their owner; anyone else gets
        the same not-found as for a missing id.
        """
        result = await self.db.execute(
            select(Prayer, User, _support_count(), _comment_count())
            .outerjoin(User, Prayer.user_id == User.id)
            .where(Prayer.id == prayer_id)
        )
        row = result.first()
        if row is None:
            raise PrayerNotFoundError(f"Prayer {prayer_id} not found")
        prayer, user, supports, comments = row
        if not prayer.is_public and prayer.user_id != viewer_id:
            raise PrayerNotFoundError(f"Prayer {prayer_id} not found")
        return PrayerWithStats(prayer, user, supports or 0, comments or 0)

    async def list_user_prayers(self, user_id: str) -> list[Prayer]:
        result = await self.db.execute(
            select(Prayer)
            .where(Prayer.user_id == user_id)
            .order_by(Prayer.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_public_prayers(
        self, limit: int = 100, offset: int = 0
    ) -> list[PrayerWithStats]:
        """Community feed, newest first, with author and engagement counts."""
        result = await self.db.execute(
            select(Prayer, User, _support_count(), _comment_count())
            .outerjoin(User, Prayer.user_id == User.id)
            .where(Prayer.is_public.is_(True))
            .order_by(Prayer.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [
            PrayerWithStats(prayer, user, supports or 0, comments or 0)
            for prayer, user, supports, comments in result.all()
        ]

    # ─── Update / delete (owner only) ────────────────────

    async def _get_owned(self, prayer_id: uuid.UUID, user_id: str) -> Prayer:
        prayer = await self.get_prayer(prayer_id)
        if prayer is None or prayer.user_id != user_id:
            raise PrayerNotFoundError(f"Prayer {prayer_id} not found")
        return prayer

    async def update_status(
        self, prayer_id: uuid.UUID, status: str, user_id: str
    ) -> Prayer:
        """Mark a prayer ongoing/answered. answered_at tracks the transition."""
        prayer = await self._get_owned(prayer_id, user_id)
        prayer.status = status
        prayer.answered_at = (
            datetime.now(timezone.utc) if status == "answered" else None
        )
        await self.db.commit()
        logger.info("prayer.status_changed", prayer_id=str(prayer_id), status=status)
        return prayer

    async def delete_prayer(self, prayer_id: uuid.UUID, user_id: str) -> None:
        prayer = await self._get_owned(prayer_id, user_id)
        # Children first: SQLite doesn't enforce ON DELETE CASCADE by default
        await self.db.execute(
            delete(PrayerSupport).where(PrayerSupport.prayer_id == prayer.id)
        )
        await self.db.execute(
            delete(PrayerComment).where(PrayerComment.prayer_id == prayer.id)
        )
        await self.db.delete(prayer)
        await self.db.commit()
        logger.info("prayer.deleted", prayer_id=str(prayer_id))

    # ─── Support ─────────────────────────────────────────

    async def add_support(
        self, prayer_id: uuid.UUID, user_id: str, support_type: str = "prayer"
    ) -> PrayerSupport:
        await self.get_visible_prayer(prayer_id, user_id)

        support = PrayerSupport(prayer_id=prayer_id, user_id=user_id, type=support_type)
        self.db.add(support)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateSupportError(
                f"Already gave '{support_type}' support to prayer {prayer_id}"
            )
        logger.info(
            "prayer.support_added",
            prayer_id=str(prayer_id),
            user_id=user_id,
            type=support_type,
        )
        return support

    async def remove_support(
        self, prayer_id: uuid.UUID, user_id: str, support_type: str
    ) -> None:
        result = await self.db.execute(
            delete(PrayerSupport).where(
                PrayerSupport.prayer_id == prayer_id,
                PrayerSupport.user_id == user_id,
                PrayerSupport.type == support_type,
            )
        )
        if not result.rowcount:
            await self.db.rollback()
            raise SupportNotFoundError("Support not found")
        await self.db.commit()
        logger.info(
            "prayer.support_removed",
            prayer_id=str(prayer_id),
            user_id=user_id,
            type=support_type,
        )

    # ─── Comments ────────────────────────────────────────

    async def add_comment(
        self, prayer_id: uuid.UUID, user_id: str, content: str
    ) -> CommentWithUser:
        await self.get_visible_prayer(prayer_id, user_id)

        comment = PrayerComment(prayer_id=prayer_id, user_id=user_id, content=content)
        self.db.add(comment)
        await self.db.commit()
        logger.info("prayer.comment_added", prayer_id=str(prayer_id), user_id=user_id)
        return CommentWithUser(comment, await self.db.get(User, user_id))

    async def list_comments(self, prayer_id: uuid.UUID) -> list[CommentWithUser]:
        if await self.get_prayer(prayer_id) is None:
            raise PrayerNotFoundError(f"Prayer {prayer_id} not found")
        result = await self.db.execute(
            select(PrayerComment, User)
            .outerjoin(User, PrayerComment.user_id == User.id)
            .where(PrayerComment.prayer_id == prayer_id)
            .order_by(PrayerComment.created_at.desc())
        )
        return [CommentWithUser(c, u) for c, u in result.all()]

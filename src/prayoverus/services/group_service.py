"""Group service — prayer groups and membership.

Learn: Membership is a plain join table with a role. The creator is
inserted as 'admin' in the same commit as the group, so a group never
exists without at least one member.
"""

import uuid
from typing import NamedTuple, Optional

import structlog
from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.db.models import GroupMember, PrayerGroup

logger = structlog.get_logger()


class GroupNotFoundError(Exception):
    pass


class AlreadyMemberError(Exception):
    pass


class MembershipNotFoundError(Exception):
    pass


class GroupWithCount(NamedTuple):
    group: PrayerGroup
    member_count: int


def _member_count():
    return (
        select(func.count(GroupMember.id))
        .where(GroupMember.group_id == PrayerGroup.id)
        .correlate(PrayerGroup)
        .scalar_subquery()
    )


class GroupService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_group(
        self,
        created_by: str,
        name: str,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        is_public: bool = True,
    ) -> GroupWithCount:
        group = PrayerGroup(
            name=name,
            description=description,
            image_url=image_url,
            created_by=created_by,
            is_public=is_public,
        )
        self.db.add(group)
        await self.db.flush()  # need group.id for the membership row

        self.db.add(GroupMember(group_id=group.id, user_id=created_by, role="admin"))
        await self.db.commit()
        logger.info("group.created", group_id=str(group.id), created_by=created_by)
        return GroupWithCount(group, 1)

    async def list_user_groups(self, user_id: str) -> list[GroupWithCount]:
        """Groups the user belongs to, newest first."""
        is_member = exists().where(
            GroupMember.group_id == PrayerGroup.id,
            GroupMember.user_id == user_id,
        )
        result = await self.db.execute(
            select(PrayerGroup, _member_count())
            .where(is_member)
            .order_by(PrayerGroup.created_at.desc())
        )
        return [GroupWithCount(g, n or 0) for g, n in result.all()]

    async def list_public_groups(self) -> list[GroupWithCount]:
        result = await self.db.execute(
            select(PrayerGroup, _member_count())
            .where(PrayerGroup.is_public.is_(True))
            .order_by(PrayerGroup.created_at.desc())
        )
        return [GroupWithCount(g, n or 0) for g, n in result.all()]

    async def join_group(self, group_id: uuid.UUID, user_id: str) -> GroupMember:
        group = await self.db.get(PrayerGroup, group_id)
        if group is None:
            raise GroupNotFoundError(f"Group {group_id} not found")

        member = GroupMember(group_id=group_id, user_id=user_id, role="member")
        self.db.add(member)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyMemberError(f"Already a member of group {group_id}")
        logger.info("group.joined", group_id=str(group_id), user_id=user_id)
        return member

    async def leave_group(self, group_id: uuid.UUID, user_id: str) -> None:
        result = await self.db.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        if not result.rowcount:
            await self.db.rollback()
            raise MembershipNotFoundError("Membership not found")
        await self.db.commit()
        logger.info("group.left", group_id=str(group_id), user_id=user_id)

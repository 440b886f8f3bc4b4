"""Prayer group API routes.

Groups don't participate in the /ws fan-out; the clients refetch group
lists after their own mutations.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.auth.dependencies import get_current_user
from prayoverus.db.engine import get_db
from prayoverus.db.models import User
from prayoverus.schemas.group import GroupCreate, GroupRead, MemberRead
from prayoverus.services.group_service import (
    AlreadyMemberError,
    GroupNotFoundError,
    GroupService,
    GroupWithCount,
    MembershipNotFoundError,
)

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> GroupService:
    return GroupService(db)


def _group_read(item: GroupWithCount) -> GroupRead:
    return GroupRead.model_validate({
        **GroupRead.model_validate(item.group).model_dump(exclude={"member_count"}),
        "member_count": item.member_count,
    })


@router.post("/groups", response_model=GroupRead, status_code=201)
async def create_group(
    body: GroupCreate,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    """Create a group; the caller joins it as admin."""
    item = await svc.create_group(
        created_by=user.id,
        name=body.name,
        description=body.description,
        image_url=body.image_url,
        is_public=body.is_public,
    )
    return _group_read(item)


@router.get("/groups/mine", response_model=list[GroupRead])
async def list_my_groups(
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    return [_group_read(item) for item in await svc.list_user_groups(user.id)]


@router.get("/groups/public", response_model=list[GroupRead])
async def list_public_groups(svc: GroupService = Depends(_svc)):
    return [_group_read(item) for item in await svc.list_public_groups()]


@router.post("/groups/{group_id}/join", response_model=MemberRead, status_code=201)
async def join_group(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    try:
        return await svc.join_group(group_id, user.id)
    except GroupNotFoundError:
        raise HTTPException(status_code=404, detail="Group not found")
    except AlreadyMemberError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/groups/{group_id}/leave")
async def leave_group(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    try:
        await svc.leave_group(group_id, user.id)
    except MembershipNotFoundError:
        raise HTTPException(status_code=404, detail="Membership not found")
    return {"message": "Left group successfully"}

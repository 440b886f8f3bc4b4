"""Prayer, support and comment API routes.

Learn: Routes translate HTTP to service calls and service errors to status
codes. The four shared-state mutations also announce themselves on /ws:

    POST   /prayers                    → new_prayer (public, first creation only)
    POST   /prayers/{id}/support       → prayer_support
    DELETE /prayers/{id}/support/{t}   → prayer_support_removed
    POST   /prayers/{id}/comments      → new_comment

The broadcast happens after the service has committed, and Broadcaster
never raises, so the HTTP response is decided before any socket is touched.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.auth.dependencies import get_current_user
from prayoverus.db.engine import get_db
from prayoverus.db.models import User
from prayoverus.events.types import (
    NEW_COMMENT,
    NEW_PRAYER,
    PRAYER_SUPPORT,
    PRAYER_SUPPORT_REMOVED,
)
from prayoverus.realtime.broadcaster import Broadcaster
from prayoverus.realtime.websocket import get_broadcaster
from prayoverus.schemas.prayer import (
    CommentCreate,
    CommentRead,
    PrayerCreate,
    PrayerRead,
    PublicPrayerRead,
    StatusChange,
    SupportCreate,
    SupportRead,
)
from prayoverus.schemas.user import UserSummary
from prayoverus.services.prayer_service import (
    CommentWithUser,
    DuplicateSupportError,
    PrayerNotFoundError,
    PrayerService,
    PrayerWithStats,
    SupportNotFoundError,
)

router = APIRouter()

IDEMPOTENCY_HEADER = "X-Idempotency-Key"


def _svc(db: AsyncSession = Depends(get_db)) -> PrayerService:
    return PrayerService(db)


def _public_read(item: PrayerWithStats) -> PublicPrayerRead:
    return PublicPrayerRead.model_validate({
        **PrayerRead.model_validate(item.prayer).model_dump(),
        "user": UserSummary.model_validate(item.user) if item.user else None,
        "support_count": item.support_count,
        "comment_count": item.comment_count,
    })


def _comment_read(item: CommentWithUser) -> CommentRead:
    return CommentRead.model_validate({
        **CommentRead.model_validate(item.comment).model_dump(exclude={"user"}),
        "user": UserSummary.model_validate(item.user) if item.user else None,
    })


# ═══════════════════════════════════════════════════════════
# Prayers
# ═══════════════════════════════════════════════════════════


@router.post("/prayers", response_model=PrayerRead, status_code=201)
async def create_prayer(
    body: PrayerCreate,
    response: Response,
    x_idempotency_key: Optional[str] = Header(None, max_length=100),
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Create a prayer request.

    Learn: The idempotency key is read from the X-Idempotency-Key header,
    falling back to the idempotencyKey body field. A repeat of a key
    returns the original prayer with 200 instead of 201, and is not
    broadcast again.
    """
    user_summary = UserSummary.model_validate(user).model_dump(mode="json")
    prayer, created = await svc.create_prayer(
        user_id=user_summary["id"],
        title=body.title,
        content=body.content,
        is_public=body.is_public,
        idempotency_key=x_idempotency_key or body.idempotency_key,
    )
    result = PrayerRead.model_validate(prayer)

    if not created:
        response.status_code = 200
        return result

    if prayer.is_public:
        await broadcaster.broadcast(
            NEW_PRAYER,
            {"prayer": result.model_dump(mode="json"), "user": user_summary},
        )
    return result


@router.get("/prayers/mine", response_model=list[PrayerRead])
async def list_my_prayers(
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
):
    """The caller's prayers, public and private, newest first."""
    return await svc.list_user_prayers(user.id)


@router.get("/prayers/public", response_model=list[PublicPrayerRead])
async def list_public_prayers(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    svc: PrayerService = Depends(_svc),
):
    """Community feed. No auth required."""
    return [_public_read(item) for item in await svc.list_public_prayers(limit, offset)]


@router.get("/prayers/{prayer_id}", response_model=PublicPrayerRead)
async def get_prayer(
    prayer_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
):
    """Single-record fetch — what the detail view pages through by id."""
    try:
        return _public_read(await svc.get_visible_prayer(prayer_id, user.id))
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")


@router.patch("/prayers/{prayer_id}/status", response_model=PrayerRead)
async def update_prayer_status(
    prayer_id: uuid.UUID,
    body: StatusChange,
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
):
    try:
        return await svc.update_status(prayer_id, body.status, user.id)
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")


@router.delete("/prayers/{prayer_id}")
async def delete_prayer(
    prayer_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
):
    try:
        await svc.delete_prayer(prayer_id, user.id)
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")
    return {"message": "Prayer deleted successfully"}


# ═══════════════════════════════════════════════════════════
# Support
# ═══════════════════════════════════════════════════════════


@router.post("/prayers/{prayer_id}/support", response_model=SupportRead, status_code=201)
async def add_support(
    prayer_id: uuid.UUID,
    body: Optional[SupportCreate] = None,
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Pray for / heart a prayer. Body is optional; type defaults to 'prayer'."""
    support_type = body.type if body else "prayer"
    try:
        support = await svc.add_support(prayer_id, user.id, support_type)
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")
    except DuplicateSupportError as e:
        raise HTTPException(status_code=409, detail=str(e))

    result = SupportRead.model_validate(support)
    await broadcaster.broadcast(
        PRAYER_SUPPORT,
        {"prayerId": str(prayer_id), "support": result.model_dump(mode="json")},
    )
    return result


@router.delete("/prayers/{prayer_id}/support/{support_type}")
async def remove_support(
    prayer_id: uuid.UUID,
    support_type: str = Path(..., pattern=r"^(prayer|heart)$"),
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    user_id = user.id
    try:
        await svc.remove_support(prayer_id, user_id, support_type)
    except SupportNotFoundError:
        raise HTTPException(status_code=404, detail="Support not found")

    await broadcaster.broadcast(
        PRAYER_SUPPORT_REMOVED,
        {"prayerId": str(prayer_id), "userId": user_id, "type": support_type},
    )
    return {"message": "Support removed successfully"}


# ═══════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════


@router.get("/prayers/{prayer_id}/comments", response_model=list[CommentRead])
async def list_comments(
    prayer_id: uuid.UUID,
    svc: PrayerService = Depends(_svc),
):
    try:
        return [_comment_read(item) for item in await svc.list_comments(prayer_id)]
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")


@router.post("/prayers/{prayer_id}/comments", response_model=CommentRead, status_code=201)
async def add_comment(
    prayer_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    svc: PrayerService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        item = await svc.add_comment(prayer_id, user.id, body.content)
    except PrayerNotFoundError:
        raise HTTPException(status_code=404, detail="Prayer not found")

    result = _comment_read(item)
    await broadcaster.broadcast(
        NEW_COMMENT,
        {"prayerId": str(prayer_id), "comment": result.model_dump(mode="json")},
    )
    return result

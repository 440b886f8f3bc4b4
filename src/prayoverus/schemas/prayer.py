"""Pydantic schemas for prayers, support and comments.

Learn: Separate schemas for create/read keeps the API clean.
- PrayerCreate: what you POST to create a prayer (idempotency key optional)
- PrayerRead: a prayer as its owner sees it
- PublicPrayerRead: feed item, adds the author and support/comment counts
- StatusChange / SupportCreate / CommentCreate: narrow mutation bodies

Input models accept the camelCase names the mobile apps send
(isPublic, idempotencyKey) as well as snake_case.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prayoverus.config import settings
from prayoverus.schemas.user import UserSummary


# ─── Prayers ─────────────────────────────────────────────

class PrayerCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    content: str
    is_public: bool = Field(default=False, alias="isPublic")
    idempotency_key: Optional[str] = Field(
        default=None, alias="idempotencyKey", max_length=100
    )

    @field_validator("title")
    @classmethod
    def _check_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Prayer title is required")
        if len(v) > settings.title_max_length:
            raise ValueError(
                f"Title must be less than {settings.title_max_length} characters"
            )
        return v

    @field_validator("content")
    @classmethod
    def _check_content(cls, v: str) -> str:
        v = v.strip()
        if len(v) < settings.content_min_length:
            raise ValueError(
                f"Prayer content must be at least {settings.content_min_length} characters"
            )
        if len(v) > settings.content_max_length:
            raise ValueError(
                f"Content must be less than {settings.content_max_length} characters"
            )
        return v


class StatusChange(BaseModel):
    status: str = Field(..., pattern=r"^(ongoing|answered)$")


class PrayerRead(BaseModel):
    id: uuid.UUID
    user_id: str
    title: str
    content: str
    status: str
    is_public: bool
    created_at: datetime
    updated_at: datetime
    answered_at: Optional[datetime]

    model_config = {"from_attributes": True}


class PublicPrayerRead(PrayerRead):
    user: Optional[UserSummary]
    support_count: int = 0
    comment_count: int = 0


# ─── Support ─────────────────────────────────────────────

class SupportCreate(BaseModel):
    type: str = Field(default="prayer", pattern=r"^(prayer|heart)$")


class SupportRead(BaseModel):
    id: uuid.UUID
    prayer_id: uuid.UUID
    user_id: str
    type: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Comments ────────────────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment cannot be empty")
        return v.strip()


class CommentRead(BaseModel):
    id: uuid.UUID
    prayer_id: uuid.UUID
    user_id: str
    content: str
    created_at: datetime
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}

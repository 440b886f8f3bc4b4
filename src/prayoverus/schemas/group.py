"""Pydantic schemas for prayer groups."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=500)
    is_public: bool = Field(default=True, alias="isPublic")


class GroupRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    image_url: Optional[str]
    created_by: str
    is_public: bool
    created_at: datetime
    updated_at: datetime
    member_count: int = 0

    model_config = {"from_attributes": True}


class MemberRead(BaseModel):
    id: uuid.UUID
    group_id: uuid.UUID
    user_id: str
    role: str
    joined_at: datetime

    model_config = {"from_attributes": True}

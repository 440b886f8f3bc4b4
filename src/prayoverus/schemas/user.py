"""Pydantic schemas for users."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserRead(BaseModel):
    id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    profile_image_url: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    """The author block embedded in feed items and comments."""
    id: str
    first_name: Optional[str]
    last_name: Optional[str]
    profile_image_url: Optional[str]

    model_config = {"from_attributes": True}

"""User service — upsert from identity claims."""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.db.models import User

logger = structlog.get_logger()

PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def upsert_user(self, user_id: str, **profile: Optional[str]) -> User:
        """Create the user on first sight, otherwise refresh changed profile fields."""
        user = await self.get_user(user_id)
        if user is None:
            user = User(id=user_id, **{f: profile.get(f) for f in PROFILE_FIELDS})
            self.db.add(user)
            await self.db.commit()
            logger.info("user.created", user_id=user_id)
            return user

        changed = {k: v for k, v in profile.items() if getattr(user, k) != v}
        if changed:
            for field, value in changed.items():
                setattr(user, field, value)
            await self.db.commit()
            logger.info("user.updated", user_id=user_id, fields=sorted(changed))
        return user

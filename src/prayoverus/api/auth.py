"""Auth routes — who am I."""

from fastapi import APIRouter, Depends

from prayoverus.auth.dependencies import get_current_user
from prayoverus.db.models import User
from prayoverus.schemas.user import UserRead

router = APIRouter()


@router.get("/auth/user", response_model=UserRead)
async def get_auth_user(user: User = Depends(get_current_user)):
    """Return the authenticated user (upserted from the token's claims)."""
    return user

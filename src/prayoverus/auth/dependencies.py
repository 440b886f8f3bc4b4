"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the current user from the request. The bearer token is verified,
then the users row is upserted from its claims so every foreign key to
users.id has something to point at.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from prayoverus.auth.jwt import PROFILE_CLAIMS, TokenError, verify_token
from prayoverus.db.engine import get_db
from prayoverus.db.models import User
from prayoverus.services.user_service import UserService


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated user (401 if missing or invalid)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Authentication required")

    try:
        claims = verify_token(authorization[7:])
    except TokenError as e:
        raise _unauthorized(str(e))

    profile = {k: claims[k] for k in PROFILE_CLAIMS if claims.get(k)}
    return await UserService(db).upsert_user(claims["sub"], **profile)

"""JWT token creation and verification.

Learn: The identity provider signs access tokens with a shared secret.
Claims we rely on:
- sub: stable user id (becomes users.id)
- email, first_name, last_name, profile_image_url: optional profile fields

create_access_token exists for local development and tests; production
tokens come from the provider.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from prayoverus.config import settings

PROFILE_CLAIMS = ("email", "first_name", "last_name", "profile_image_url")


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    user_id: str,
    expires_minutes: Optional[int] = None,
    **profile: Optional[str],
) -> str:
    """Create a signed access token for user_id with optional profile claims."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    for claim in PROFILE_CLAIMS:
        if profile.get(claim):
            payload[claim] = profile[claim]
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if not payload.get("sub"):
        raise TokenError("Invalid token: missing subject")
    return payload

"""
Security utilities: signed session tokens.

The same HS256 token authenticates REST calls (Authorization: Bearer) and
plugin WebSocket sessions (`?token=` query parameter, since browsers cannot
set headers on a WebSocket handshake).
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import jwt, JWTError

from studyhub.config import get_settings


def create_access_token(
    user_id: UUID | str,
    expires_in: timedelta | None = None,
    extra_claims: dict | None = None,
) -> str:
    """Sign a token whose `sub` claim is the user id."""
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.JWT_EXPIRY_MINUTES)

    claims = dict(extra_claims or {})
    claims.update({"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime})
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Verified claims, or None for a forged, malformed or expired token."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

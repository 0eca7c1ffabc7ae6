"""JWT token creation and verification.

- Access token: short-lived, used for API calls and the websocket handshake
- Refresh token: long-lived, used to get new access tokens

Both carry the user id as "sub" and their kind as "type".
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from appstalker.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    return _encode(user_id, "access", expires)


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Create a JWT refresh token."""
    expires = datetime.now(timezone.utc) + timedelta(
        days=expires_days or settings.refresh_token_expire_days
    )
    return _encode(user_id, "refresh", expires)


def verify_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success. Raises TokenError on failure, or
    when expected_type is given and the token is of another kind.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if expected_type and payload.get("type") != expected_type:
        raise TokenError(f"Wrong token type, expected {expected_type}")
    return payload


def _encode(user_id: str, token_type: str, expires: datetime) -> str:
    payload = {
        "sub": user_id,
        "type": token_type,
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

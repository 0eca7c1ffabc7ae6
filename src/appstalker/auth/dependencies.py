"""FastAPI auth dependencies.

Used as Depends() in route handlers to extract and validate the current
user from the Authorization: Bearer <access token> header.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException

from appstalker.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """The authenticated user making the request."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    @property
    def uuid(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Soft auth — None when no bearer token is present."""
    if authorization and authorization.startswith("Bearer "):
        return identity_from_token(authorization[7:])
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Hard auth — 401 if no valid access token."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def identity_from_token(token: str) -> CurrentIdentity:
    """Resolve an access token to an identity, or 401."""
    try:
        payload = verify_token(token, expected_type="access")
        uuid.UUID(payload["sub"])
    except (TokenError, KeyError, ValueError) as e:
        raise HTTPException(
            status_code=401,
            detail=str(e) or "Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(user_id=payload["sub"])

"""Auth API — registration, login, token refresh.

- POST /auth/register → create a user (and their profile)
- POST /auth/login → email/password → JWT tokens
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → current user info
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from appstalker.auth.password import verify_password
from appstalker.db.engine import get_db
from appstalker.schemas.profile import UserRead
from appstalker.services.profile_service import ProfileService, UserAlreadyExistsError

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.]+$")
    password: str = Field(min_length=8)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


def _svc(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


def _tokens_for(user_id: str) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id),
        refresh_token=create_refresh_token(user_id),
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, svc: ProfileService = Depends(_svc)):
    """Create a new user account with a default profile."""
    try:
        user = await svc.create_user(
            email=body.email,
            username=body.username,
            password=body.password,
            display_name=body.display_name,
        )
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return user


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: ProfileService = Depends(_svc)):
    """Login with email and password → JWT tokens."""
    user = await svc.get_user_by_email(body.email)
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens_for(str(user.id))


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return _tokens_for(payload["sub"])


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProfileService = Depends(_svc),
):
    user = await svc.get_user(identity.uuid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

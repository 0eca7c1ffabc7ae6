"""Pydantic schemas for users, profiles, follows and search."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from appstalker.schemas.app import AppRead


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    username: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PublicUser(BaseModel):
    id: uuid.UUID
    username: str

    model_config = {"from_attributes": True}


# ─── Profiles ───────────────────────────────────────────

class ProfileRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    display_name: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_private: bool
    show_apps: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileWithCounts(ProfileRead):
    followers_count: int = 0
    following_count: int = 0
    is_following: Optional[bool] = None


class MyProfileResponse(BaseModel):
    user: UserRead
    profile: ProfileWithCounts


class UserProfileResponse(BaseModel):
    """Another user's profile, with only their visible apps."""
    user: PublicUser
    profile: ProfileWithCounts
    apps: list[AppRead] = []


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = None
    show_apps: Optional[bool] = None
    is_private: Optional[bool] = None


# ─── Search / follow lists ──────────────────────────────

class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


class UserSearchResponse(BaseModel):
    users: list[UserSummary]


class FollowRead(BaseModel):
    id: uuid.UUID
    follower_id: uuid.UUID
    following_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class FollowListResponse(BaseModel):
    users: list[UserSummary]

"""Profile API routes — own profile, other users' profiles, search.

Viewing someone else's profile follows two switches on their profile:
is_private (only followers may look) and show_apps (whether the app list
is shown at all). Only apps the owner made visible are ever returned.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.config import settings
from appstalker.db.engine import get_db
from appstalker.schemas.app import AppRead
from appstalker.schemas.profile import (
    MyProfileResponse,
    ProfileRead,
    ProfileUpdate,
    ProfileWithCounts,
    PublicUser,
    UserProfileResponse,
    UserRead,
    UserSearchResponse,
)
from appstalker.services.app_service import AppService
from appstalker.services.profile_service import ProfileService
from appstalker.services.social_service import SocialService

router = APIRouter(prefix="/profile")


def _svc(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


@router.get("/me", response_model=MyProfileResponse)
async def get_my_profile(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProfileService = Depends(_svc),
):
    user = await svc.get_user(identity.uuid)
    profile = await svc.get_profile(identity.uuid)
    if not user or not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    followers, following = await SocialService(svc.db).counts(user.id)
    return MyProfileResponse(
        user=UserRead.model_validate(user),
        profile=ProfileWithCounts(
            **ProfileRead.model_validate(profile).model_dump(),
            followers_count=followers,
            following_count=following,
        ),
    )


@router.put("/me", response_model=ProfileRead)
async def update_my_profile(
    body: ProfileUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProfileService = Depends(_svc),
):
    profile = await svc.update_profile(identity.uuid, body)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.get("/search/{query}", response_model=UserSearchResponse)
async def search_users(query: str, svc: ProfileService = Depends(_svc)):
    users = await svc.search(query, limit=settings.search_result_limit)
    return UserSearchResponse(users=users)


@router.get("/{username}", response_model=UserProfileResponse)
async def get_user_profile(
    username: str,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProfileService = Depends(_svc),
):
    user = await svc.get_user_by_username(username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    profile = await svc.get_profile(user.id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    social = SocialService(svc.db)
    is_self = user.id == identity.uuid
    is_following = await social.is_following(identity.uuid, user.id)

    if profile.is_private and not is_self and not is_following:
        raise HTTPException(status_code=403, detail="This profile is private")

    followers, following = await social.counts(user.id)
    apps = []
    if profile.show_apps:
        apps = [
            AppRead.model_validate(app)
            for app in await AppService(svc.db).list_visible_apps(user.id)
        ]

    return UserProfileResponse(
        user=PublicUser.model_validate(user),
        profile=ProfileWithCounts(
            **ProfileRead.model_validate(profile).model_dump(),
            followers_count=followers,
            following_count=following,
            is_following=is_following,
        ),
        apps=apps,
    )

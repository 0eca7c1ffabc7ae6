"""Social API routes — follow, unfollow, follower lists.

Following someone sends them a new_follower notification (persisted, then
pushed if they're online).
"""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.db.engine import get_db
from appstalker.db.models import User
from appstalker.notifications.types import NEW_FOLLOWER, new_follower_content
from appstalker.realtime.registry import ConnectionRegistry
from appstalker.realtime.websocket import get_registry
from appstalker.schemas.profile import FollowListResponse, FollowRead
from appstalker.services.fanout import FanOutEngine
from appstalker.services.social_service import (
    AlreadyFollowingError,
    NotFollowingError,
    SelfFollowError,
    SocialService,
    UserNotFoundError,
)

router = APIRouter(prefix="/social")


def _svc(db: AsyncSession = Depends(get_db)) -> SocialService:
    return SocialService(db)


@router.post("/follow/{user_id}", response_model=FollowRead, status_code=201)
async def follow_user(
    user_id: uuid.UUID,
    background: BackgroundTasks,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: SocialService = Depends(_svc),
    registry: ConnectionRegistry = Depends(get_registry),
):
    try:
        edge = await svc.follow(identity.uuid, user_id)
    except SelfFollowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadyFollowingError as e:
        raise HTTPException(status_code=409, detail=str(e))

    edge_read = FollowRead.model_validate(edge)

    follower = await svc.db.get(User, identity.uuid)
    if follower is not None:
        engine = FanOutEngine(svc.db, registry, follows=svc, background=background)
        await engine.notify(
            user_id=user_id,
            type=NEW_FOLLOWER,
            content=new_follower_content(follower.username),
            related_user_id=identity.uuid,
        )
    return edge_read


@router.delete("/follow/{user_id}", status_code=204)
async def unfollow_user(
    user_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: SocialService = Depends(_svc),
):
    try:
        await svc.unfollow(identity.uuid, user_id)
    except NotFollowingError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/followers", response_model=FollowListResponse)
async def list_followers(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: SocialService = Depends(_svc),
):
    return FollowListResponse(users=await svc.list_followers(identity.uuid))


@router.get("/following", response_model=FollowListResponse)
async def list_following(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: SocialService = Depends(_svc),
):
    return FollowListResponse(users=await svc.list_following(identity.uuid))

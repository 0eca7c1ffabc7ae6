"""Notification API routes — the durable side of push.

Anything a client missed while offline is here: list newest first, mark
one or all as read. Rows are never deleted through the API.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.db.engine import get_db
from appstalker.notifications.store import NotificationStore
from appstalker.schemas.notification import (
    MarkAllReadResponse,
    NotificationList,
    NotificationRead,
)

router = APIRouter(prefix="/notifications")


def _store(db: AsyncSession = Depends(get_db)) -> NotificationStore:
    return NotificationStore(db)


@router.get("", response_model=NotificationList)
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    identity: CurrentIdentity = Depends(get_current_user),
    store: NotificationStore = Depends(_store),
):
    notifications = await store.list_for_user(
        identity.uuid, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationList(
        notifications=[NotificationRead.model_validate(n) for n in notifications],
        unread_count=await store.unread_count(identity.uuid),
    )


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    identity: CurrentIdentity = Depends(get_current_user),
    store: NotificationStore = Depends(_store),
):
    return MarkAllReadResponse(updated_count=await store.mark_all_read(identity.uuid))


@router.put("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    store: NotificationStore = Depends(_store),
):
    notification = await store.mark_read(identity.uuid, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification

"""Fan-out engine — tell every follower that an app was revealed.

For an (owner, app) pair that just went hidden → visible:
1. resolve the owner's followers
2. persist one new_app notification per follower (own commit each)
3. push every stored row through the connection registry, all at once

The write loop is not one transaction. Each follower is independent:
a failed write for follower B is logged, counted and skipped, and never
undoes follower A's row.

Pushes only start once every row is written, and run concurrently, so one
slow device never holds up the other followers. Routers hand the engine
their BackgroundTasks: the pushes then run after the response is sent and
the request returns as soon as persistence is done. Without it (service
code, tests) the engine awaits the pushes itself. Either way an offline
follower simply finds the notification on their next fetch.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog
from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.db.models import Notification
from appstalker.notifications.store import NotificationStore
from appstalker.notifications.types import (
    NEW_APP,
    PUSH_NOTIFICATION,
    new_app_content,
    push_message,
)
from appstalker.realtime.registry import ConnectionRegistry
from appstalker.schemas.notification import NotificationRead
from appstalker.services.social_service import SocialService

logger = structlog.get_logger()

# (recipient, message) ready to hand to the registry
Push = tuple[uuid.UUID, dict[str, Any]]


class FollowerLookup(Protocol):
    async def follower_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]: ...


@dataclass
class FanOutResult:
    """Counts for one fan-out (or several, once combined with +=)."""

    notified_count: int = 0   # notifications persisted
    failed_count: int = 0     # notifications that failed to persist
    delivered_count: int = 0  # pushes that reached a live channel (0 when deferred)

    def __iadd__(self, other: "FanOutResult") -> "FanOutResult":
        self.notified_count += other.notified_count
        self.failed_count += other.failed_count
        self.delivered_count += other.delivered_count
        return self


class FanOutEngine:
    """Persists notifications one recipient at a time, then pushes them together."""

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectionRegistry,
        notifications: Optional[NotificationStore] = None,
        follows: Optional[FollowerLookup] = None,
        background: Optional[BackgroundTasks] = None,
    ):
        self.db = db
        self.registry = registry
        self.notifications = notifications or NotificationStore(db)
        self.follows = follows or SocialService(db)
        self.background = background

    async def fan_out_app_visible(
        self,
        owner_id: uuid.UUID,
        app: Any,
        follower_ids: Optional[list[uuid.UUID]] = None,
    ) -> FanOutResult:
        """Notify every follower of owner_id that app is now visible.

        app is anything with .id and .app_name (an InstalledApp row or an
        AppRead snapshot). Pass follower_ids when the caller already
        resolved them (bulk updates resolve once per batch).
        """
        if follower_ids is None:
            follower_ids = await self.follows.follower_ids(owner_id)

        result = FanOutResult()
        if not follower_ids:
            return result

        # Read once up front: a rollback after a failed write expires ORM rows.
        app_id, app_name = app.id, app.app_name
        content = new_app_content(app_name)

        pushes: list[Push] = []
        for follower_id in follower_ids:
            notification = await self._persist(
                user_id=follower_id,
                type=NEW_APP,
                content=content,
                related_user_id=owner_id,
                related_app_id=app_id,
            )
            if notification is None:
                result.failed_count += 1
                continue
            result.notified_count += 1
            pushes.append(self._message(notification))

        result.delivered_count = await self._dispatch(pushes)

        logger.info(
            "fanout.completed",
            owner_id=str(owner_id),
            app_id=str(app_id),
            followers=len(follower_ids),
            notified=result.notified_count,
            failed=result.failed_count,
            delivered=result.delivered_count,
            deferred=self.background is not None,
        )
        return result

    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        content: str,
        related_user_id: Optional[uuid.UUID] = None,
        related_app_id: Optional[uuid.UUID] = None,
    ) -> Optional[Notification]:
        """Persist and push a single notification.

        Same failure policy as the fan-out loop: returns None when the write
        fails instead of raising.
        """
        notification = await self._persist(
            user_id=user_id,
            type=type,
            content=content,
            related_user_id=related_user_id,
            related_app_id=related_app_id,
        )
        if notification is not None:
            await self._dispatch([self._message(notification)])
        return notification

    async def push_all(self, pushes: list[Push]) -> int:
        """Send every push concurrently. Returns how many reached a live channel."""
        if not pushes:
            return 0
        results = await asyncio.gather(
            *(self.registry.send_to_user(user_id, message) for user_id, message in pushes)
        )
        return sum(1 for delivered in results if delivered)

    # ─── Internals ───────────────────────────────────────

    async def _persist(self, **fields) -> Optional[Notification]:
        try:
            return await self.notifications.create(**fields)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "fanout.persist_failed",
                user_id=str(fields["user_id"]),
                type=fields["type"],
                error=str(e),
            )
            return None

    async def _dispatch(self, pushes: list[Push]) -> int:
        if not pushes:
            return 0
        if self.background is not None:
            self.background.add_task(self.push_all, pushes)
            return 0
        return await self.push_all(pushes)

    @staticmethod
    def _message(notification: Notification) -> Push:
        # Serialized now, while the row is fresh; pushes may run after the
        # session is gone.
        data = NotificationRead.model_validate(notification).model_dump(mode="json")
        return notification.user_id, push_message(PUSH_NOTIFICATION, data)

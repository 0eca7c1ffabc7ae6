"""Notification store — keyed persistence for notification rows.

Rows are written one at a time, each with its own commit, so a failed
write for one recipient never takes another recipient's notification down
with it. The only mutation after insert is flipping is_read.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.db.models import Notification, utcnow


class NotificationStore:
    """Notification rows backed by the relational database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        type: str,
        content: str,
        related_user_id: Optional[uuid.UUID] = None,
        related_app_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Insert and commit one notification. Returns the stored row."""
        notification = Notification(
            id=uuid.uuid4(),
            user_id=user_id,
            type=type,
            content=content,
            related_user_id=related_user_id,
            related_app_id=related_app_id,
            is_read=False,
            created_at=utcnow(),
        )
        self.db.add(notification)
        await self.db.commit()
        return notification

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = (
            query.order_by(Notification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar_one()

    async def mark_read(
        self, user_id: uuid.UUID, notification_id: uuid.UUID
    ) -> Notification | None:
        """Mark one of the user's notifications read. None if it isn't theirs."""
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalars().first()
        if notification is None:
            return None
        notification.is_read = True
        await self.db.commit()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount

"""Pydantic schemas for notifications."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    content: str
    related_user_id: Optional[uuid.UUID] = None
    related_app_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    notifications: list[NotificationRead]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated_count: int

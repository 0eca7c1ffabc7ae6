"""Pydantic schemas for installed apps and visibility updates.

Separate input schemas (sync items, visibility updates) from the read
schema. AppRead doubles as the detached snapshot the services hand back
after committing, so callers never touch an expired ORM row.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, StrictBool


# ─── Read ───────────────────────────────────────────────

class AppRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    package_name: str
    app_name: str
    app_icon: Optional[str] = None
    platform: str
    is_visible: bool
    installed_at: datetime

    model_config = {"from_attributes": True}


# ─── Sync ───────────────────────────────────────────────

class AppSyncItem(BaseModel):
    package_name: str = Field(..., min_length=1, max_length=255)
    app_name: str = Field(..., min_length=1, max_length=255)
    app_icon: Optional[str] = None
    platform: str = Field(..., pattern=r"^(android|ios)$")


class AppSyncRequest(BaseModel):
    apps: list[AppSyncItem]


class AppSyncResponse(BaseModel):
    apps: list[AppRead]
    new_apps: list[AppRead]
    new_apps_count: int
    removed_apps_count: int
    notified_count: int = 0


# ─── Visibility ─────────────────────────────────────────

class VisibilityUpdate(BaseModel):
    package_name: str = Field(..., min_length=1, max_length=255)
    is_visible: StrictBool


class VisibilityToggle(BaseModel):
    is_visible: StrictBool


class AppVisibilityResponse(BaseModel):
    app: AppRead
    notified_count: int = 0
    failed_count: int = 0


class BulkVisibilityRequest(BaseModel):
    # Items are validated one by one by the coordinator, so a malformed
    # entry is skipped instead of failing the whole batch.
    updates: list[Any] = Field(..., min_length=1)


class BulkVisibilityResponse(BaseModel):
    updated_count: int
    skipped_count: int = 0
    notified_transitions: int
    notified_count: int
    failed_count: int
    apps: list[AppRead]

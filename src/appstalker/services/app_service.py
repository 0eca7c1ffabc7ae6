"""Installed-app service — sync, listing, and visibility toggles.

Every method that writes commits before returning and hands back AppRead
snapshots, so the caller can run a fan-out (which may roll the session
back on a failed notification write) without touching expired rows.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.db.models import InstalledApp
from appstalker.schemas.app import AppRead, AppSyncItem
from appstalker.services.visibility import should_notify

logger = structlog.get_logger()


@dataclass
class SyncResult:
    apps: list[AppRead] = field(default_factory=list)
    new_apps: list[AppRead] = field(default_factory=list)
    removed_count: int = 0


class AppService:
    """Business logic for a user's installed apps."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Queries ────────────────────────────────────────

    async def list_apps(self, owner_id: uuid.UUID) -> list[InstalledApp]:
        result = await self.db.execute(
            select(InstalledApp)
            .where(InstalledApp.user_id == owner_id)
            .order_by(InstalledApp.installed_at, InstalledApp.package_name)
        )
        return list(result.scalars().all())

    async def list_visible_apps(self, owner_id: uuid.UUID) -> list[InstalledApp]:
        result = await self.db.execute(
            select(InstalledApp)
            .where(InstalledApp.user_id == owner_id, InstalledApp.is_visible.is_(True))
            .order_by(InstalledApp.installed_at, InstalledApp.package_name)
        )
        return list(result.scalars().all())

    async def get_by_package(
        self, owner_id: uuid.UUID, package_name: str
    ) -> Optional[InstalledApp]:
        result = await self.db.execute(
            select(InstalledApp).where(
                InstalledApp.user_id == owner_id,
                InstalledApp.package_name == package_name,
            )
        )
        return result.scalars().first()

    async def get_app(self, owner_id: uuid.UUID, app_id: uuid.UUID) -> Optional[InstalledApp]:
        result = await self.db.execute(
            select(InstalledApp).where(
                InstalledApp.id == app_id,
                InstalledApp.user_id == owner_id,
            )
        )
        return result.scalars().first()

    # ─── Sync ───────────────────────────────────────────

    async def sync_apps(
        self,
        owner_id: uuid.UUID,
        items: list[AppSyncItem],
        default_visible: bool = False,
    ) -> SyncResult:
        """Reconcile the stored app list with what the device reports.

        - packages seen for the first time are inserted with default_visible
        - packages already stored get their name/icon/platform refreshed
          (visibility is the user's choice and is left alone)
        - stored packages missing from the report are deleted
        """
        # Last entry wins if the device reports a package twice.
        reported = {item.package_name: item for item in items}

        existing = {app.package_name: app for app in await self.list_apps(owner_id)}

        new_rows: list[InstalledApp] = []
        for package_name, item in reported.items():
            app = existing.get(package_name)
            if app is None:
                app = InstalledApp(
                    user_id=owner_id,
                    package_name=package_name,
                    app_name=item.app_name,
                    app_icon=item.app_icon,
                    platform=item.platform,
                    is_visible=default_visible,
                )
                self.db.add(app)
                new_rows.append(app)
            else:
                app.app_name = item.app_name
                app.app_icon = item.app_icon
                app.platform = item.platform

        removed = [name for name in existing if name not in reported]
        if removed:
            await self.db.execute(
                delete(InstalledApp).where(
                    InstalledApp.user_id == owner_id,
                    InstalledApp.package_name.in_(removed),
                )
            )

        await self.db.commit()

        new_apps = [AppRead.model_validate(app) for app in new_rows]
        apps = [AppRead.model_validate(app) for app in await self.list_apps(owner_id)]

        logger.info(
            "apps.synced",
            owner_id=str(owner_id),
            reported=len(reported),
            new=len(new_apps),
            removed=len(removed),
        )
        return SyncResult(apps=apps, new_apps=new_apps, removed_count=len(removed))

    # ─── Visibility ─────────────────────────────────────

    async def set_visibility(
        self, owner_id: uuid.UUID, app_id: uuid.UUID, is_visible: bool
    ) -> tuple[Optional[AppRead], bool]:
        """Apply a visibility flag to one app.

        Returns (snapshot, became_visible); (None, False) if the app isn't
        the owner's. Write errors propagate.
        """
        app = await self.get_app(owner_id, app_id)
        if app is None:
            return None, False

        previous = app.is_visible
        app.is_visible = is_visible
        await self.db.commit()

        return AppRead.model_validate(app), should_notify(previous, is_visible)

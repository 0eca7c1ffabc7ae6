"""Bulk visibility coordinator — "show all apps" in one request.

Applies a batch of (package_name, is_visible) updates for one owner and
fans out for every app the batch leaves newly visible. Two properties
separate this from calling the single-app path K times:

- the owner's follower set is resolved once per batch, not once per app
- items are isolated: a malformed item, an unknown package, a failed
  lookup or a failed write skips that item and the rest of the batch
  carries on

Only the final state of a package counts: revealing an app and hiding it
again in the same batch notifies nobody.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.schemas.app import AppRead, VisibilityUpdate
from appstalker.services.app_service import AppService
from appstalker.services.fanout import FanOutEngine, FanOutResult
from appstalker.services.visibility import should_notify

logger = structlog.get_logger()


@dataclass
class BulkVisibilityResult:
    updated_apps: list[AppRead] = field(default_factory=list)
    skipped_count: int = 0
    notified_transitions: int = 0
    fan_out: FanOutResult = field(default_factory=FanOutResult)

    @property
    def updated_count(self) -> int:
        return len(self.updated_apps)


class BulkVisibilityCoordinator:
    """Wraps the fan-out engine for batches of visibility updates."""

    def __init__(
        self,
        db: AsyncSession,
        engine: FanOutEngine,
        apps: Optional[AppService] = None,
    ):
        self.db = db
        self.engine = engine
        self.apps = apps or AppService(db)

    async def apply_bulk_visibility(
        self, owner_id: uuid.UUID, updates: Sequence[Any]
    ) -> BulkVisibilityResult:
        """Apply updates in order. Items may be VisibilityUpdates or raw dicts."""
        result = BulkVisibilityResult()
        # package_name → snapshot, for packages this batch left newly visible
        revealed: dict[str, AppRead] = {}

        for position, item in enumerate(updates):
            update = self._validate(owner_id, position, item)
            if update is None:
                result.skipped_count += 1
                continue

            snapshot, became_visible = await self._apply_one(owner_id, update)
            if snapshot is None:
                result.skipped_count += 1
                continue
            result.updated_apps.append(snapshot)
            if became_visible:
                revealed[update.package_name] = snapshot
            elif not update.is_visible:
                revealed.pop(update.package_name, None)

        result.notified_transitions = len(revealed)
        if revealed:
            result.fan_out = await self.fan_out_many(owner_id, list(revealed.values()))

        logger.info(
            "bulk_visibility.applied",
            owner_id=str(owner_id),
            requested=len(updates),
            updated=result.updated_count,
            skipped=result.skipped_count,
            transitions=result.notified_transitions,
            notified=result.fan_out.notified_count,
            failed=result.fan_out.failed_count,
        )
        return result

    async def fan_out_many(
        self, owner_id: uuid.UUID, apps: Sequence[AppRead]
    ) -> FanOutResult:
        """Fan out several newly visible apps against one follower lookup."""
        total = FanOutResult()
        if not apps:
            return total

        follower_ids = await self.engine.follows.follower_ids(owner_id)
        if not follower_ids:
            return total

        for app in apps:
            total += await self.engine.fan_out_app_visible(
                owner_id, app, follower_ids=follower_ids
            )
        return total

    # ─── Internals ───────────────────────────────────────

    @staticmethod
    def _validate(
        owner_id: uuid.UUID, position: int, item: Any
    ) -> Optional[VisibilityUpdate]:
        if isinstance(item, VisibilityUpdate):
            return item
        try:
            return VisibilityUpdate.model_validate(item)
        except ValidationError as e:
            logger.info(
                "bulk_visibility.invalid_item",
                owner_id=str(owner_id),
                position=position,
                errors=e.errors(include_url=False, include_input=False),
            )
            return None

    async def _apply_one(
        self, owner_id: uuid.UUID, update: VisibilityUpdate
    ) -> tuple[Optional[AppRead], bool]:
        """Look up, flip and commit one app. (None, False) when skipped."""
        try:
            app = await self.apps.get_by_package(owner_id, update.package_name)
            if app is None:
                logger.info(
                    "bulk_visibility.unknown_package",
                    owner_id=str(owner_id),
                    package_name=update.package_name,
                )
                return None, False

            previous = app.is_visible
            app.is_visible = update.is_visible
            await self.db.commit()
            return (
                AppRead.model_validate(app),
                should_notify(previous, update.is_visible),
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "bulk_visibility.item_failed",
                owner_id=str(owner_id),
                package_name=update.package_name,
                error=str(e),
            )
            return None, False

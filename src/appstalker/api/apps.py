"""Installed-app API routes — sync, listing, visibility.

Visibility changes are where notifications come from: a hidden → visible
flip fans out a new_app notification to every follower of the owner. The
response only depends on the primary write (the visibility flag); fan-out
failures are logged and reported as counts, never as errors. The response
is sent once the notifications are persisted; pushes follow in the
background.
"""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.config import settings
from appstalker.db.engine import get_db
from appstalker.realtime.registry import ConnectionRegistry
from appstalker.realtime.websocket import get_registry
from appstalker.schemas.app import (
    AppRead,
    AppSyncRequest,
    AppSyncResponse,
    AppVisibilityResponse,
    BulkVisibilityRequest,
    BulkVisibilityResponse,
    VisibilityToggle,
)
from appstalker.services.app_service import AppService
from appstalker.services.bulk_visibility import BulkVisibilityCoordinator
from appstalker.services.fanout import FanOutEngine

router = APIRouter(prefix="/apps")


def _svc(db: AsyncSession = Depends(get_db)) -> AppService:
    return AppService(db)


def _engine(
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_registry),
) -> FanOutEngine:
    # Pushes go out after the response is sent.
    return FanOutEngine(db, registry, background=background)


def _coordinator(
    db: AsyncSession = Depends(get_db),
    engine: FanOutEngine = Depends(_engine),
) -> BulkVisibilityCoordinator:
    return BulkVisibilityCoordinator(db, engine)


# ─── Sync ───────────────────────────────────────────────

@router.post("/sync", response_model=AppSyncResponse)
async def sync_apps(
    body: AppSyncRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AppService = Depends(_svc),
    coordinator: BulkVisibilityCoordinator = Depends(_coordinator),
):
    """Reconcile the stored app list with the device's installed apps.

    New apps start with the configured default visibility. When that is
    visible, followers hear about them right away; otherwise nothing is
    sent until the user reveals them.
    """
    result = await svc.sync_apps(
        identity.uuid, body.apps, default_visible=settings.default_app_visible
    )

    notified = 0
    revealed = [app for app in result.new_apps if app.is_visible]
    if revealed:
        fan_out = await coordinator.fan_out_many(identity.uuid, revealed)
        notified = fan_out.notified_count

    return AppSyncResponse(
        apps=result.apps,
        new_apps=result.new_apps,
        new_apps_count=len(result.new_apps),
        removed_apps_count=result.removed_count,
        notified_count=notified,
    )


# ─── Listing ────────────────────────────────────────────

@router.get("/me", response_model=list[AppRead])
async def list_my_apps(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AppService = Depends(_svc),
):
    return await svc.list_apps(identity.uuid)


# ─── Visibility ─────────────────────────────────────────

@router.put("/{app_id}/visibility", response_model=AppVisibilityResponse)
async def set_app_visibility(
    app_id: uuid.UUID,
    body: VisibilityToggle,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AppService = Depends(_svc),
    engine: FanOutEngine = Depends(_engine),
):
    """Show or hide one app. Revealing it notifies the owner's followers."""
    app, became_visible = await svc.set_visibility(identity.uuid, app_id, body.is_visible)
    if app is None:
        raise HTTPException(status_code=404, detail="App not found")

    response = AppVisibilityResponse(app=app)
    if became_visible:
        fan_out = await engine.fan_out_app_visible(identity.uuid, app)
        response.notified_count = fan_out.notified_count
        response.failed_count = fan_out.failed_count
    return response


@router.post("/visibility/bulk", response_model=BulkVisibilityResponse)
async def bulk_set_visibility(
    body: BulkVisibilityRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    coordinator: BulkVisibilityCoordinator = Depends(_coordinator),
):
    """Apply many visibility updates at once (e.g. "show all").

    Malformed items and unknown package names are skipped rather than
    failing the batch; only an empty or non-list `updates` is rejected.
    """
    result = await coordinator.apply_bulk_visibility(identity.uuid, body.updates)
    return BulkVisibilityResponse(
        updated_count=result.updated_count,
        skipped_count=result.skipped_count,
        notified_transitions=result.notified_transitions,
        notified_count=result.fan_out.notified_count,
        failed_count=result.fan_out.failed_count,
        apps=result.updated_apps,
    )

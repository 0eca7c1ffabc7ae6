"""Health check endpoint.

Verifies the server is running and reports whether the database and Redis
are reachable, plus how many push connections are live.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker import __version__
from appstalker.db.engine import get_db
from appstalker.db.redis import get_redis
from appstalker.realtime.registry import ConnectionRegistry
from appstalker.realtime.websocket import get_registry

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_registry),
):
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    # Redis only backs rate limiting, so "disabled" is not degraded.
    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except RuntimeError:
        checks["redis"] = "disabled"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v in ("ok", "disabled") for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks, "connections": registry.connection_count()}

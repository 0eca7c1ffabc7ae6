"""FastAPI application factory.

create_app() returns a configured FastAPI instance. It also creates the
process's ConnectionRegistry and hangs it on app.state, where routes reach
it through the get_registry dependency and the websocket endpoint through
websocket.app.state. Lifespan manages startup/shutdown (Redis, registry,
database engine).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from appstalker import __version__
from appstalker.api import api_router
from appstalker.config import settings
from appstalker.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "appstalker.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from appstalker.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("appstalker.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("appstalker.redis_unavailable", error=str(e))
        # Redis is optional, only rate limiting depends on it

    yield

    logger.info("appstalker.shutdown")

    # Drop every live push connection
    await app.state.registry.close()

    await close_redis()

    from appstalker.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="AppStalker API",
        description="See what your friends have installed",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.registry = ConnectionRegistry(
        send_timeout=settings.push_send_timeout_seconds
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from appstalker.middleware.rate_limit import RateLimitMiddleware
    from appstalker.middleware.request_id import RequestIdMiddleware
    from appstalker.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from appstalker.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: appstalker.main:app)
app = create_app()

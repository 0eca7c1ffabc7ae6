"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Auth is applied at the include_router level with FastAPI's dependencies
parameter, so every route in a protected router requires a valid access
token. Health and auth routers are open.
"""

from fastapi import APIRouter, Depends

from appstalker.api.apps import router as apps_router
from appstalker.api.auth import router as auth_router
from appstalker.api.health import router as health_router
from appstalker.api.notifications import router as notifications_router
from appstalker.api.profile import router as profile_router
from appstalker.api.social import router as social_router
from appstalker.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid access token
api_router.include_router(profile_router, tags=["profile"], dependencies=_auth)
api_router.include_router(apps_router, tags=["apps"], dependencies=_auth)
api_router.include_router(social_router, tags=["social"], dependencies=_auth)
api_router.include_router(notifications_router, tags=["notifications"], dependencies=_auth)

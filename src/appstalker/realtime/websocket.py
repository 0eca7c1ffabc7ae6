"""WebSocket endpoint — real-time notification delivery to app clients.

Each client connects to /ws?token=<access JWT>. The handler:
1. Authenticates the token (closes with 4001 if missing or invalid)
2. Registers the socket with the connection registry for that user
3. Answers {"type": "ping"} with {"type": "pong"} to keep mobile
   connections alive through proxies
4. Unregisters the socket however the connection ends, including a
   server-side close by the registry after a failed push

One connection per device or app instance; a user may hold several.
"""

import json

import structlog
from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from appstalker.auth.jwt import TokenError, verify_token
from appstalker.notifications.types import PONG
from appstalker.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()
router = APIRouter()


def get_registry(request: Request) -> ConnectionRegistry:
    """FastAPI dependency — the application's connection registry."""
    return request.app.state.registry


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return

    try:
        payload = verify_token(token, expected_type="access")
        user_id = payload["sub"]
    except (TokenError, KeyError):
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    await websocket.accept()

    registry: ConnectionRegistry = websocket.app.state.registry
    await registry.register(user_id, websocket)
    logger.info("ws.connected", user_id=user_id)

    try:
        # The registry closes the socket server-side when a push to it fails.
        while websocket.application_state == WebSocketState.CONNECTED:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await websocket.send_json({"type": PONG})
    except WebSocketDisconnect:
        pass
    except RuntimeError:
        # Sending a pong on a socket the registry just closed.
        if websocket.application_state == WebSocketState.CONNECTED:
            raise
    finally:
        await registry.unregister(user_id, websocket)
        logger.info("ws.disconnected", user_id=user_id)

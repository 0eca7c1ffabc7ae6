"""Notification type constants and the realtime push envelope.

Centralizing the types keeps the database check constraint, the request
schemas and the producers in agreement.
"""

from typing import Any

# ─── Notification types (notifications.type column) ─────

NEW_APP = "new_app"
NEW_FOLLOWER = "new_follower"

NOTIFICATION_TYPES = (NEW_APP, NEW_FOLLOWER)

# ─── Realtime message types (websocket "type" field) ────

PUSH_NOTIFICATION = "notification"
PONG = "pong"


def new_app_content(app_name: str) -> str:
    return f"installed {app_name}"


def new_follower_content(username: str) -> str:
    return f"{username} started following you"


def push_message(message_type: str, data: Any) -> dict[str, Any]:
    """Tagged payload sent over a push channel: {"type": ..., "data": ...}."""
    return {"type": message_type, "data": data}

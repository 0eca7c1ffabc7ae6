"""Connection registry — who is online, and how to reach them.

Maps a user id to the set of live push channels (one per device / tab)
currently open for that user. The fan-out engine pushes through
send_to_user(); the websocket endpoint calls register() on accept and
unregister() on close.

Concurrency: a single asyncio.Lock guards the user → channels map. It is
held for the map lookup or mutation only, never across a network send.

Backpressure: nothing is queued. Each channel gets one attempt per message,
bounded by send_timeout; a channel that raises or times out is dropped and
closed (1011), so the client sees the session end and reconnects.
An offline user is not an error: the persisted notification is the
durable record.
"""

import asyncio
import uuid
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger()

# WebSocket close codes (RFC 6455)
CLOSE_GOING_AWAY = 1001
CLOSE_SEND_FAILED = 1011


class Channel(Protocol):
    """Anything that can push a JSON message to one client session.

    An optional `async close(code=...)` is called when the registry drops
    the channel. Starlette's WebSocket satisfies this.
    """

    async def send_json(self, data: Any) -> None: ...


UserKey = str | uuid.UUID


class ConnectionRegistry:
    """Process-wide map of user id → live channels.

    Created once per application (see main.create_app) and closed at
    shutdown. Channels are tracked by identity, so registering the same
    channel twice is a no-op.
    """

    def __init__(self, send_timeout: Optional[float] = None):
        self.send_timeout = send_timeout
        # user id → {id(channel): channel}
        self._channels: dict[str, dict[int, Channel]] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: UserKey, channel: Channel) -> None:
        key = str(user_id)
        async with self._lock:
            self._channels.setdefault(key, {})[id(channel)] = channel
        logger.debug("registry.registered", user_id=key)

    async def unregister(self, user_id: UserKey, channel: Channel) -> None:
        """Remove a channel. Drops the user entry once its last channel is gone."""
        key = str(user_id)
        async with self._lock:
            self._discard(key, channel)
        logger.debug("registry.unregistered", user_id=key)

    async def send_to_user(self, user_id: UserKey, message: Any) -> bool:
        """Push message to every channel of user_id.

        Returns False when the user has no live channel or every send
        failed. Never raises for delivery problems: a failing channel is
        removed and the remaining channels still get the message.
        """
        key = str(user_id)
        async with self._lock:
            channels = list(self._channels.get(key, {}).values())

        if not channels:
            return False

        results = await asyncio.gather(
            *(self._deliver(key, channel, message) for channel in channels)
        )

        failed = [channel for channel, ok in zip(channels, results) if not ok]
        if failed:
            async with self._lock:
                for channel in failed:
                    self._discard(key, channel)
            # A dropped channel gets no more pushes; closing it ends the
            # client session so the device reconnects.
            await asyncio.gather(
                *(self._close_channel(channel, CLOSE_SEND_FAILED) for channel in failed)
            )
            logger.info(
                "registry.channels_removed",
                user_id=key,
                removed=len(failed),
            )

        return any(results)

    def is_connected(self, user_id: UserKey) -> bool:
        return str(user_id) in self._channels

    def connection_count(self, user_id: Optional[UserKey] = None) -> int:
        """Live channels for one user, or across all users when user_id is None."""
        if user_id is not None:
            return len(self._channels.get(str(user_id), {}))
        return sum(len(channels) for channels in self._channels.values())

    async def close(self) -> None:
        """Close every channel and forget them. Called at shutdown."""
        async with self._lock:
            channels = [
                channel
                for user_channels in self._channels.values()
                for channel in user_channels.values()
            ]
            self._channels.clear()

        await asyncio.gather(
            *(self._close_channel(channel, CLOSE_GOING_AWAY) for channel in channels)
        )

        logger.info("registry.closed", channels=len(channels))

    # ─── Internals ───────────────────────────────────────

    async def _close_channel(self, channel: Channel, code: int) -> None:
        close = getattr(channel, "close", None)
        if close is None:
            return
        try:
            if self.send_timeout is not None:
                await asyncio.wait_for(close(code=code), self.send_timeout)
            else:
                await close(code=code)
        except Exception as e:
            # Already closed, or the transport is gone.
            logger.debug("registry.close_failed", code=code, error=str(e))

    def _discard(self, key: str, channel: Channel) -> None:
        # Caller holds self._lock.
        user_channels = self._channels.get(key)
        if not user_channels:
            return
        user_channels.pop(id(channel), None)
        if not user_channels:
            del self._channels[key]

    async def _deliver(self, key: str, channel: Channel, message: Any) -> bool:
        try:
            if self.send_timeout is not None:
                await asyncio.wait_for(channel.send_json(message), self.send_timeout)
            else:
                await channel.send_json(message)
        except asyncio.TimeoutError:
            logger.debug("registry.send_timeout", user_id=key, timeout=self.send_timeout)
            return False
        except Exception as e:
            # Broken pipe, closed socket, anything the transport raises.
            logger.debug("registry.send_failed", user_id=key, error=str(e))
            return False
        return True

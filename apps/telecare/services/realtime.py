"""Realtime fan-out of chat events over WebSockets.

Single-process broadcaster built on the presence registry: every live
connection joins the delivery group of the user it registered as, and events
addressed to a user reach all of that user's connections. Delivery is
fire-and-forget; clients reconcile through a history fetch on reconnect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from fastapi import WebSocket

from telecare.core.settings import settings
from telecare.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)

RECEIVE_MESSAGE = "receiveMessage"
MESSAGE_DELETED = "messageDeleted"
ONLINE_USERS = "getOnlineUsers"


class Notifier(Protocol):
    """Capability the dispatchers depend on to push events to users."""

    async def emit_to_user(self, user_id: str, event: str, payload: Any) -> int: ...


class RealtimeRouter:
    """Routes events to every live connection of a user identity."""

    def __init__(
        self,
        registry: PresenceRegistry | None = None,
        *,
        send_timeout: float | None = None,
    ) -> None:
        self.registry = registry or PresenceRegistry()
        self.send_timeout = send_timeout or settings.ws_send_timeout_seconds

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.registry.register(user_id, websocket)
        logger.info("User %s connected (%d live connections)", user_id, len(self.registry))
        await self.broadcast_online_users()

    async def disconnect(self, websocket: WebSocket) -> None:
        user_id = self.registry.unregister(websocket)
        if user_id is None:
            return
        logger.info("User %s disconnected", user_id)
        await self.broadcast_online_users()

    def is_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)

    async def emit_to_user(self, user_id: str, event: str, payload: Any) -> int:
        """Push `event` to each live connection of `user_id`; never raises."""
        targets = self.registry.connections_for(user_id)
        if not targets:
            return 0
        return await self._send_all(targets, event, payload)

    async def broadcast_online_users(self) -> None:
        online = self.registry.online_user_ids()
        targets = [conn for uid in online for conn in self.registry.connections_for(uid)]
        if targets:
            await self._send_all(targets, ONLINE_USERS, online)

    async def close_all(self) -> None:
        for user_id in self.registry.online_user_ids():
            for ws in self.registry.connections_for(user_id):
                try:
                    await ws.close(code=1001)
                except Exception as exc:
                    logger.debug("Closing connection for %s failed: %s", user_id, exc)
        self.registry.clear()

    async def _send_all(self, targets: list[Any], event: str, payload: Any) -> int:
        """Send to every target concurrently; stalled or broken sockets are dropped.

        Dropping a socket changes who is online, so the remaining connections
        get a fresh presence list.
        """
        envelope = {"event": event, "data": payload}
        results = await asyncio.gather(*(self._send_one(ws, event, envelope) for ws in targets))

        dropped = [ws for ws, ok in zip(targets, results) if not ok]
        for ws in dropped:
            self.registry.unregister(ws)
        if dropped:
            await self.broadcast_online_users()
        return len(targets) - len(dropped)

    async def _send_one(self, ws: Any, event: str, envelope: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(ws.send_json(envelope), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Dropping %s event for a stalled connection", event)
            return False
        except Exception as exc:
            logger.warning("Dropping %s event for a dead connection: %s", event, exc)
            return False
        return True


__all__ = [
    "MESSAGE_DELETED",
    "Notifier",
    "ONLINE_USERS",
    "RECEIVE_MESSAGE",
    "RealtimeRouter",
]

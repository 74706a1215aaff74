import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable

from fastapi import WebSocket

from taskmanagement.reminders.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class NotificationHub:
    """Owns the live notification WebSockets and keeps the registry in sync.

    Each accepted socket gets an opaque connection id. The registry maps user ids
    to connection ids, this hub maps connection ids to sockets.
    """

    def __init__(self, registry: ConnectionRegistry, send_timeout: float = 5.0):
        self.registry = registry
        self.send_timeout = send_timeout
        self.active_connections: Dict[str, WebSocket] = {}
        self._owners: Dict[str, int] = {}

    async def connect(self, websocket: WebSocket, user_id: int) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        self._owners[connection_id] = user_id
        self.registry.on_connect(user_id, connection_id)
        return connection_id

    def disconnect(self, connection_id: str, user_id: int) -> None:
        self.active_connections.pop(connection_id, None)
        self._owners.pop(connection_id, None)
        self.registry.on_disconnect(user_id, connection_id)

    async def send_to_connections(self, connection_ids: Iterable[str], event: str, payload: Any) -> int:
        """Send a named event to the given connections only.

        Fire-and-forget: a socket that fails or does not take the frame within
        ``send_timeout`` seconds is logged and dropped, never raised.
        Returns how many sockets accepted the frame.
        """
        sent = 0
        frame = {"event": event, "data": payload}
        for connection_id in connection_ids:
            websocket = self.active_connections.get(connection_id)
            if websocket is None:
                logger.debug(f"[Hub] Connection {connection_id} already gone")
                continue
            try:
                await asyncio.wait_for(websocket.send_json(frame), timeout=self.send_timeout)
                sent += 1
            except Exception as e:
                logger.warning(f"⚠️ [Hub] Dropping connection {connection_id} after failed send: {e!r}")
                user_id = self._owners.get(connection_id)
                if user_id is not None:
                    self.disconnect(connection_id, user_id)
        return sent

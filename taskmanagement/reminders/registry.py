"""
Connection registry: which push-channel sessions are live for which user.

The registry is shared by the WebSocket endpoint (connect/disconnect events) and
the notification dispatcher (lookups). Updates for one user are serialized by a
lock chosen from a fixed stripe of locks, so unrelated users never contend on a
single global lock and the registry stays safe whether it is called from the
event loop or from worker threads.
"""
import logging
import threading
from typing import Dict, FrozenSet, List, Set, Union

from .metrics import push_connections_active

logger = logging.getLogger(__name__)

UserKey = Union[int, str]


class ConnectionRegistry:
    def __init__(self, stripes: int = 64):
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(stripes)]
        self._connections: Dict[str, Set[str]] = {}

    def _lock_for(self, user_key: str) -> threading.Lock:
        return self._locks[hash(user_key) % len(self._locks)]

    def on_connect(self, user_id: UserKey, connection_id: str) -> int:
        """Add a connection for a user; returns the user's live connection count."""
        key = str(user_id)
        with self._lock_for(key):
            connections = self._connections.setdefault(key, set())
            added = connection_id not in connections
            connections.add(connection_id)
            count = len(connections)
        if added:
            push_connections_active.inc()
        logger.info(f"🔌 [Registry] User {key} connected ({connection_id}). Connections for user: {count}")
        return count

    def on_disconnect(self, user_id: UserKey, connection_id: str) -> None:
        """Remove a connection; drops the user's entry once no connection is left."""
        key = str(user_id)
        with self._lock_for(key):
            connections = self._connections.get(key)
            if connections is None or connection_id not in connections:
                return
            connections.discard(connection_id)
            if not connections:
                del self._connections[key]
        push_connections_active.dec()
        logger.info(f"🔌 [Registry] User {key} disconnected ({connection_id})")

    def lookup(self, user_id: UserKey) -> FrozenSet[str]:
        key = str(user_id)
        with self._lock_for(key):
            connections = self._connections.get(key)
            return frozenset(connections) if connections else frozenset()

    def user_count(self) -> int:
        return len(self._connections)

    def connection_count(self) -> int:
        return sum(len(c) for c in list(self._connections.values()))

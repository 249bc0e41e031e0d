from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional

from starlette.websockets import WebSocketDisconnect, WebSocketState

from .messages import encode

logger = logging.getLogger(__name__)


class Connection:
    """One accepted plugin socket plus the id the registry gave it."""

    def __init__(self, connection_id: str, socket: Any) -> None:
        self.id = connection_id
        self.socket = socket

    @property
    def is_open(self) -> bool:
        # Registered sockets may still be handshaking or already closing.
        return (
            getattr(self.socket, "client_state", None) == WebSocketState.CONNECTED
            and getattr(self.socket, "application_state", None) == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.socket.send_text(text)

    async def send(self, message: Dict[str, Any]) -> None:
        await self.send_text(encode(message))

    def __repr__(self) -> str:
        return f"Connection({self.id!r}, open={self.is_open})"


class ConnectionRegistry:
    def __init__(self, prefix: str = "conn") -> None:
        self._prefix = prefix
        self._ids = itertools.count(1)
        self._connections: Dict[str, Connection] = {}

    def register(self, socket: Any) -> Connection:
        conn = Connection(f"{self._prefix}-{next(self._ids)}", socket)
        self._connections[conn.id] = conn
        return conn

    def unregister(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def count(self) -> int:
        return len(self._connections)

    def open_connections(self) -> List[Connection]:
        return [c for c in self._connections.values() if c.is_open]

    def open_count(self) -> int:
        return len(self.open_connections())

    def for_each_open(self, fn: Callable[[Connection], Any]) -> int:
        seen = 0
        for conn in self.open_connections():
            fn(conn)
            seen += 1
        return seen

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Write ``message`` to every open connection and return the fan-out."""
        text = encode(message)
        sent = 0
        # Snapshot first: a disconnect during an await mutates the dict.
        for conn in self.open_connections():
            try:
                await conn.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("broadcast to %s failed: %s", conn.id, exc)
                continue
            sent += 1
        return sent

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

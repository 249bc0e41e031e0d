from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .audit import AuditLedger
from .caches import SnapshotCache
from .config import RelayConfig
from .core import RelayCore
from .correlation import CorrelationTable
from .dispatcher import AnalysisHandler, Dispatcher
from .errors import RelayError
from .messages import CONNECTED, TYPE_FIELD
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class Relay:
    """Everything one relay process owns, wired together."""

    def __init__(self, config: Optional[RelayConfig] = None, on_analysis: Optional[AnalysisHandler] = None) -> None:
        self.config = config or RelayConfig()
        self.registry = ConnectionRegistry()
        self.pending = CorrelationTable()
        self.selection = SnapshotCache("selection")
        self.variables = SnapshotCache("variables")
        self.core = RelayCore(self.registry, self.pending, default_timeout=self.config.request_timeout_sec)
        self.dispatcher = Dispatcher(self.pending, self.selection, self.variables, on_analysis=on_analysis)
        self.audit = AuditLedger(self.config.audit_limit)

    async def connect(self, socket: Any) -> Connection:
        """Register an accepted socket and greet it."""
        conn = self.registry.register(socket)
        logger.info("Figma plugin connected: %s (%d open)", conn.id, self.registry.open_count())
        self.audit.record("connect", clientId=conn.id)
        try:
            await conn.send({
                TYPE_FIELD: CONNECTED,
                "message": "Connected to Figma Relay Server",
                "clientId": conn.id,
            })
        except Exception:
            # Dropped before the greeting landed; nothing else will unregister it.
            self.disconnect(conn)
            raise
        return conn

    def disconnect(self, conn: Connection) -> None:
        # Pending requests stay alive; another plugin may still answer them.
        self.registry.unregister(conn.id)
        self.selection.evict(conn.id)
        self.variables.evict(conn.id)
        logger.info("Figma plugin disconnected: %s", conn.id)
        self.audit.record("disconnect", clientId=conn.id)

    async def handle(self, conn: Connection, raw: Any) -> Optional[str]:
        return await self.dispatcher.dispatch(conn, raw)

    async def publish(self, message: Dict[str, Any]) -> int:
        sent = await self.core.publish(message)
        self.audit.record("publish", type=message.get(TYPE_FIELD), clientCount=sent)
        return sent

    async def request(self, message: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        timeout = self.config.clamp_timeout(timeout)
        try:
            result = await self.core.send_and_await(message, timeout=timeout)
        except RelayError as exc:
            self.audit.record(
                "request_failed",
                type=message.get(TYPE_FIELD),
                requestId=message.get("requestId"),
                reason=exc.reason,
                error=str(exc),
            )
            raise
        self.audit.record("request", type=message.get(TYPE_FIELD), requestId=message.get("requestId"))
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "clients": self.registry.count(),
            "openClients": self.registry.open_count(),
            "pendingRequests": len(self.pending),
            "selectionSnapshots": len(self.selection),
            "variableSnapshots": len(self.variables),
        }

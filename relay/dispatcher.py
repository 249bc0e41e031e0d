from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from . import messages as m
from .caches import SnapshotCache
from .correlation import CorrelationTable
from .errors import RemoteRejectedError
from .registry import Connection

logger = logging.getLogger(__name__)

AnalysisHandler = Callable[[Connection, Dict[str, Any]], Awaitable[None]]

_ENVELOPE_KEYS = (m.TYPE_FIELD, m.REQUEST_ID_FIELD, "timestamp")


def _body(message: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in message.items() if k not in _ENVELOPE_KEYS}


def _request_id(message: Dict[str, Any]) -> Optional[str]:
    # Ids are always strings we minted; anything else cannot match an entry.
    value = message.get(m.REQUEST_ID_FIELD)
    return value if isinstance(value, str) and value else None


def _count(message: Dict[str, Any]) -> Optional[int]:
    value = message.get("count")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class Dispatcher:
    """Routes one inbound plugin frame. Holds no state between frames."""

    def __init__(
        self,
        pending: CorrelationTable,
        selection: SnapshotCache,
        variables: SnapshotCache,
        on_analysis: Optional[AnalysisHandler] = None,
    ) -> None:
        self.pending = pending
        self.selection = selection
        self.variables = variables
        self.on_analysis = on_analysis
        self._handlers = {
            m.PING: self._on_ping,
            m.SELECTION: self._on_selection,
            m.OPERATION_RESULT: self._on_operation_result,
            m.VARIABLES: self._on_variables,
            m.ANALYZE: self._on_analyze,
        }

    async def dispatch(self, conn: Connection, raw: Any) -> Optional[str]:
        """Handle one frame and return its type, or None if it was dropped."""
        try:
            message = m.decode(raw)
        except ValueError as exc:
            logger.warning("malformed message from %s dropped: %s", conn.id, exc)
            return None

        kind = message.get(m.TYPE_FIELD)
        handler = self._handlers.get(kind) if isinstance(kind, str) else None
        if handler is None:
            logger.debug("ignoring message type %r from %s", kind, conn.id)
            return None
        await handler(conn, message)
        return kind

    async def _on_ping(self, conn: Connection, message: Dict[str, Any]) -> None:
        await conn.send({m.TYPE_FIELD: m.PONG})

    async def _on_selection(self, conn: Connection, message: Dict[str, Any]) -> None:
        self.selection.store(conn.id, _body(message), count=_count(message))
        request_id = _request_id(message)
        if request_id and not self.pending.resolve(request_id, message):
            logger.debug("selection reply for unknown request %s from %s", request_id, conn.id)

    async def _on_operation_result(self, conn: Connection, message: Dict[str, Any]) -> None:
        request_id = _request_id(message)
        if not request_id:
            logger.debug("operation-result without requestId from %s", conn.id)
            return
        if message.get("success") is True:
            settled = self.pending.resolve(request_id, message)
        else:
            error = message.get("error") or m.DEFAULT_OPERATION_ERROR
            settled = self.pending.reject(request_id, RemoteRejectedError(str(error), request_id))
        if not settled:
            logger.debug("operation-result for unknown request %s from %s", request_id, conn.id)

    async def _on_variables(self, conn: Connection, message: Dict[str, Any]) -> None:
        self.variables.store(conn.id, _body(message), count=_count(message))

    async def _on_analyze(self, conn: Connection, message: Dict[str, Any]) -> None:
        if self.on_analysis is None:
            logger.info("analyze request from %s ignored: no analysis companion", conn.id)
            return
        await self.on_analysis(conn, message)

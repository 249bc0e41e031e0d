from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from .correlation import CorrelationTable
from .errors import NoClientsError
from .messages import REQUEST_ID_FIELD, stamp
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RelayCore:
    """Broadcast to every plugin, optionally waiting for a correlated reply.

    Any connected plugin may answer a request. The first reply carrying the
    matching requestId settles it; the rest are dropped by the table.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        pending: CorrelationTable,
        default_timeout: float = 30.0,
    ) -> None:
        self.registry = registry
        self.pending = pending
        self.default_timeout = default_timeout

    async def publish(self, message: Dict[str, Any]) -> int:
        stamp(message)
        sent = await self.registry.broadcast(message)
        logger.info("published %s to %d client(s)", message.get("type"), sent)
        return sent

    async def send_and_await(self, message: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        timeout = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _succeed(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def _fail(exc: BaseException) -> None:
            if not future.done():
                future.set_exception(exc)

        request_id = self.pending.create(_succeed, _fail, timeout)
        message[REQUEST_ID_FIELD] = request_id
        stamp(message)

        try:
            sent = await self.registry.broadcast(message)
        except BaseException:
            self.pending.discard(request_id)
            raise
        if sent == 0:
            self.pending.discard(request_id)
            raise NoClientsError(request_id=request_id)

        logger.debug("request %s (%s) sent to %d client(s)", request_id, message.get("type"), sent)
        return await future

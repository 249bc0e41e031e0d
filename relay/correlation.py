from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .errors import RelayTimeoutError

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]


def new_request_id() -> str:
    # ms clock + 96 random bits; unique well beyond any timeout window.
    return f"req_{int(time.time() * 1000):x}_{secrets.token_hex(12)}"


@dataclass
class PendingRequest:
    request_id: str
    on_success: SuccessCallback
    on_failure: FailureCallback
    timeout: float
    timer: asyncio.TimerHandle
    created_at: float


class CorrelationTable:
    """Maps request ids to callbacks, each guarded by its own timer.

    Every entry is settled at most once: the first of resolve, reject or the
    timer removes it, and anything arriving afterwards finds nothing.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        id_factory: Callable[[], str] = new_request_id,
    ) -> None:
        self._loop = loop
        self._id_factory = id_factory
        self._pending: Dict[str, PendingRequest] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def create(self, on_success: SuccessCallback, on_failure: FailureCallback, timeout: float) -> str:
        loop = self._get_loop()
        request_id = self._id_factory()
        while request_id in self._pending:
            request_id = self._id_factory()
        timer = loop.call_later(timeout, self._expire, request_id)
        self._pending[request_id] = PendingRequest(
            request_id=request_id,
            on_success=on_success,
            on_failure=on_failure,
            timeout=timeout,
            timer=timer,
            created_at=loop.time(),
        )
        return request_id

    def _take(self, request_id: Optional[str]) -> Optional[PendingRequest]:
        if not request_id:
            return None
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry.timer.cancel()
        return entry

    def resolve(self, request_id: Optional[str], value: Any) -> bool:
        entry = self._take(request_id)
        if entry is None:
            return False
        entry.on_success(value)
        return True

    def reject(self, request_id: Optional[str], error: BaseException) -> bool:
        entry = self._take(request_id)
        if entry is None:
            return False
        entry.on_failure(error)
        return True

    def discard(self, request_id: Optional[str]) -> bool:
        return self._take(request_id) is not None

    def _expire(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        entry.on_failure(RelayTimeoutError(entry.timeout, request_id))

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

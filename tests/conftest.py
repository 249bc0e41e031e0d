from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
from starlette.websockets import WebSocketState


class FakeSocket:
    """Stands in for a starlette WebSocket: records text frames it is sent."""

    def __init__(self, open: bool = True, fail: bool = False) -> None:
        self.client_state = WebSocketState.CONNECTED if open else WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTED
        self.fail = fail
        self.sent: List[str] = []

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket is closing")
        self.sent.append(text)

    def close(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    def frames(self) -> List[Dict[str, Any]]:
        return [json.loads(t) for t in self.sent]

    def last(self) -> Dict[str, Any]:
        return json.loads(self.sent[-1])


@pytest.fixture
def make_socket():
    def _make(**kwargs: Any) -> FakeSocket:
        return FakeSocket(**kwargs)
    return _make

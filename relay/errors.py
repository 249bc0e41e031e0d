from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for failures surfaced to relay callers."""

    reason = "relay_error"

    def __init__(self, message: str, request_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.request_id = request_id

    def to_dict(self) -> dict:
        out = {"reason": self.reason, "error": str(self)}
        if self.request_id:
            out["requestId"] = self.request_id
        return out


class NoClientsError(RelayError):
    reason = "no_clients"

    def __init__(self, message: str = "No Figma clients connected", request_id: Optional[str] = None) -> None:
        super().__init__(message, request_id)


class RelayTimeoutError(RelayError):
    reason = "timeout"

    def __init__(self, timeout: float, request_id: Optional[str] = None) -> None:
        super().__init__(f"No reply from Figma within {timeout:g}s", request_id)
        self.timeout = timeout


class RemoteRejectedError(RelayError):
    reason = "remote_rejected"

# Explicit exports keep the relay surface predictable.
from .caches import EMPTY, Snapshot, SnapshotCache
from .config import RelayConfig
from .core import RelayCore
from .correlation import CorrelationTable
from .dispatcher import Dispatcher
from .errors import NoClientsError, RelayError, RelayTimeoutError, RemoteRejectedError
from .hub import Relay
from .registry import Connection, ConnectionRegistry

__all__ = [
    "EMPTY",
    "Connection",
    "ConnectionRegistry",
    "CorrelationTable",
    "Dispatcher",
    "NoClientsError",
    "Relay",
    "RelayConfig",
    "RelayCore",
    "RelayError",
    "RelayTimeoutError",
    "RemoteRejectedError",
    "Snapshot",
    "SnapshotCache",
]

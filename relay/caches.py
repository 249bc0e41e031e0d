from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union


@dataclass(frozen=True)
class Snapshot:
    connection_id: str
    timestamp: int
    payload: Any
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.connection_id,
            "timestamp": self.timestamp,
            "count": self.count,
            "data": self.payload,
        }


class _Empty:
    """Result of reading a cache nobody has reported into."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = _Empty()


def _default_clock() -> int:
    return int(time.time() * 1000)


def _infer_count(payload: Any) -> int:
    if isinstance(payload, (list, tuple)):
        return len(payload)
    if isinstance(payload, dict):
        for key in ("nodes", "selection", "variables", "items"):
            value = payload.get(key)
            if isinstance(value, (list, tuple)):
                return len(value)
    return 0 if payload is None else 1


class SnapshotCache:
    """Last reported value per connection; reads pick the newest."""

    def __init__(self, name: str, clock: Callable[[], int] = _default_clock) -> None:
        self.name = name
        self._clock = clock
        self._snapshots: Dict[str, Snapshot] = {}

    def store(
        self,
        connection_id: str,
        payload: Any,
        count: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> Snapshot:
        snap = Snapshot(
            connection_id=connection_id,
            timestamp=self._clock() if timestamp is None else int(timestamp),
            payload=payload,
            count=_infer_count(payload) if count is None else int(count),
        )
        self._snapshots[connection_id] = snap
        return snap

    def latest(self) -> Union[Snapshot, _Empty]:
        best: Optional[Snapshot] = None
        for snap in self._snapshots.values():
            if best is None or snap.timestamp > best.timestamp:
                best = snap
        return EMPTY if best is None else best

    def all(self) -> List[Snapshot]:
        return sorted(self._snapshots.values(), key=lambda s: s.timestamp, reverse=True)

    def get(self, connection_id: str) -> Optional[Snapshot]:
        return self._snapshots.get(connection_id)

    def evict(self, connection_id: str) -> bool:
        return self._snapshots.pop(connection_id, None) is not None

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._snapshots

from __future__ import annotations

import time
from collections import deque
from typing import Any, Deque, Dict, List


class AuditLedger:
    """Bounded in-memory trail of relay events, newest last."""

    def __init__(self, limit: int = 200) -> None:
        self._records: Deque[Dict[str, Any]] = deque(maxlen=max(1, int(limit)))

    def record(self, event: str, **payload: Any) -> Dict[str, Any]:
        entry = {"ts": time.time(), "event": event, **payload}
        self._records.append(entry)
        return entry

    def tail(self, limit: int) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        return list(self._records)[-limit:]

    def __len__(self) -> int:
        return len(self._records)

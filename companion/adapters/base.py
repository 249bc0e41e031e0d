from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BaseAdapter(ABC):
    """LLM backend that turns a design prompt into a short written summary.

    Subclasses implement `complete`; callers use `summarize`, which rejects
    blank output so the plugin never receives an empty analysis.
    """

    kind = ""

    def __init__(self, name: str, settings: Optional[Dict[str, Any]] = None) -> None:
        self.name = name
        self.settings = settings or {}

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        raise NotImplementedError

    def summarize(self, prompt: str, system: Optional[str] = None) -> str:
        text = (self.complete(prompt, system=system) or "").strip()
        if not text:
            raise RuntimeError(f"{self.kind} adapter {self.name!r} returned an empty summary")
        return text

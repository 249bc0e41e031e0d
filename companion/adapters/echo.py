from __future__ import annotations

from typing import Optional

from .base import BaseAdapter


class EchoAdapter(BaseAdapter):
    """Offline adapter: the summary is the prompt, optionally prefixed."""

    kind = "echo"

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        return f"{self.settings.get('prefix', '')}{prompt}"

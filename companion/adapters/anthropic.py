from __future__ import annotations

import json
import os
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from .base import BaseAdapter

DEFAULT_MODEL = "claude-3-5-sonnet-20240620"
DEFAULT_API_VERSION = "2023-06-01"


class AnthropicAdapter(BaseAdapter):
    kind = "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key())

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        api_key = self._api_key()
        if not api_key:
            raise RuntimeError("Anthropic API key missing")
        payload: Dict[str, Any] = {
            "model": str(self.settings.get("model") or DEFAULT_MODEL),
            "max_tokens": int(self.settings.get("max_tokens") or 1024),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        req = urllib.request.Request(
            f"{self._base_url()}/messages",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "x-api-key": api_key,
                "anthropic-version": str(self.settings.get("version") or DEFAULT_API_VERSION),
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, context=ssl.create_default_context(), timeout=self._timeout()) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8") if exc.fp else str(exc)
            raise RuntimeError(f"Anthropic request failed: {exc.code} {detail}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Anthropic request failed: {exc.reason}") from exc
        return self.extract_text(json.loads(raw))

    def _api_key(self) -> Optional[str]:
        return self.settings.get("api_key") or os.environ.get("ANTHROPIC_API_KEY")

    def _base_url(self) -> str:
        return str(self.settings.get("base_url") or "https://api.anthropic.com/v1").rstrip("/")

    def _timeout(self) -> float:
        return float(self.settings.get("timeout") or 60)

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        parts = []
        for block in data.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts).strip()

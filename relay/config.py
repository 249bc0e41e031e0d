from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

DEFAULT_API_KEY = "change-this-key"
DEFAULT_COMPANION_CONFIG = "companion/config.json"


def _parse_csv_list(value: Optional[str], default: Optional[List[str]] = None) -> List[str]:
    if not value:
        return list(default or [])
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class RelayConfig:
    api_key: str = DEFAULT_API_KEY
    host: str = "0.0.0.0"
    port: int = 3000
    request_timeout_sec: float = 30.0
    max_timeout_sec: float = 120.0
    audit_limit: int = 200
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    companion_config: str = DEFAULT_COMPANION_CONFIG
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("FIGMA_RELAY_API_KEY", DEFAULT_API_KEY),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3000")),
            request_timeout_sec=float(env.get("FIGMA_RELAY_REQUEST_TIMEOUT_SEC", "30")),
            max_timeout_sec=float(env.get("FIGMA_RELAY_MAX_TIMEOUT_SEC", "120")),
            audit_limit=int(env.get("FIGMA_RELAY_AUDIT_LIMIT", "200")),
            cors_origins=_parse_csv_list(env.get("FIGMA_RELAY_CORS_ORIGINS"), default=["*"]),
            companion_config=env.get("FIGMA_RELAY_COMPANION_CONFIG", DEFAULT_COMPANION_CONFIG),
            log_level=env.get("FIGMA_RELAY_LOG_LEVEL", "INFO").upper(),
        )

    def clamp_timeout(self, requested: Optional[float]) -> float:
        if requested is None:
            return self.request_timeout_sec
        try:
            value = float(requested)
        except (TypeError, ValueError):
            return self.request_timeout_sec
        if not math.isfinite(value) or value <= 0:
            return self.request_timeout_sec
        return min(value, self.max_timeout_sec)

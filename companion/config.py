from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_MAX_NODES = 200


@dataclass
class AdapterConfig:
    name: str
    type: str
    enabled: bool = True
    settings: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AnalysisConfig:
    default_adapter: Optional[str] = None
    adapters: List[AdapterConfig] = field(default_factory=list)
    system_prompt: Optional[str] = None
    max_nodes: int = DEFAULT_MAX_NODES


def _parse_adapter(raw: Dict[str, Any]) -> AdapterConfig:
    return AdapterConfig(
        name=str(raw.get("name", "")),
        type=str(raw.get("type", "")),
        enabled=bool(raw.get("enabled", True)),
        settings=dict(raw.get("settings", {})),
    )


def default_config() -> AnalysisConfig:
    # Offline fallback so a bare checkout still answers analyze requests.
    return AnalysisConfig(
        default_adapter="echo",
        adapters=[AdapterConfig(name="echo", type="echo")],
    )


def load_config(path: str | Path) -> AnalysisConfig:
    p = Path(path)
    if not p.exists():
        return default_config()
    data = json.loads(p.read_text())
    adapters = [_parse_adapter(a) for a in data.get("adapters", [])]
    return AnalysisConfig(
        default_adapter=data.get("default_adapter"),
        adapters=adapters,
        system_prompt=data.get("system_prompt"),
        max_nodes=int(data.get("max_nodes") or DEFAULT_MAX_NODES),
    )


def select_adapter(config: AnalysisConfig, name: Optional[str]) -> Optional[AdapterConfig]:
    if name:
        for a in config.adapters:
            if a.name == name and a.enabled:
                return a
    if config.default_adapter:
        for a in config.adapters:
            if a.name == config.default_adapter and a.enabled:
                return a
    for a in config.adapters:
        if a.enabled:
            return a
    return None

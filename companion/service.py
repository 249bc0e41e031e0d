from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .adapters.anthropic import AnthropicAdapter
from .adapters.base import BaseAdapter
from .adapters.echo import EchoAdapter
from .config import AdapterConfig, AnalysisConfig, load_config, select_adapter

DEFAULT_SYSTEM = (
    "You review Figma designs. Summarize the structure of the selected nodes, "
    "point out layout, naming and consistency problems, and keep it short."
)

_FACTORIES = {
    "echo": EchoAdapter,
    "anthropic": AnthropicAdapter,
}


def create_adapter(cfg: AdapterConfig) -> BaseAdapter:
    adapter_cls = _FACTORIES.get(cfg.type)
    if not adapter_cls:
        raise ValueError(f"Unknown adapter type: {cfg.type}")
    return adapter_cls(cfg.name, dict(cfg.settings or {}))


def _describe_node(node: Any) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    label = f"- {node.get('type', 'NODE')} \"{node.get('name', '')}\""
    if node.get("id"):
        label += f" ({node['id']})"
    width, height = node.get("width"), node.get("height")
    if width is not None and height is not None:
        label += f" {width}x{height}"
    children = node.get("children")
    if isinstance(children, list) and children:
        label += f", {len(children)} children"
    return label


class AnalysisService:
    """Turns an `analyze` frame from the plugin into an LLM summary."""

    def __init__(self, config: AnalysisConfig) -> None:
        self.config = config
        # Built once; adapters hold their own settings.
        self.adapters: Dict[str, BaseAdapter] = {}

    @classmethod
    def from_path(cls, path: str) -> "AnalysisService":
        return cls(load_config(path))

    def resolve_adapter(self, name: Optional[str] = None) -> BaseAdapter:
        cfg = select_adapter(self.config, name)
        if not cfg:
            raise RuntimeError("No enabled adapters in config")
        adapter = self.adapters.get(cfg.name)
        if not adapter:
            adapter = create_adapter(cfg)
            self.adapters[cfg.name] = adapter
        return adapter

    def build_prompt(self, payload: Dict[str, Any]) -> str:
        nodes = payload.get("nodes")
        if not isinstance(nodes, list):
            nodes = payload.get("selection") if isinstance(payload.get("selection"), list) else []
        lines: List[str] = []
        question = payload.get("prompt") or payload.get("question")
        if question:
            lines += ["Question:", str(question), ""]
        lines.append(f"Selected nodes ({len(nodes)}):")
        for node in nodes[: self.config.max_nodes]:
            described = _describe_node(node)
            if described:
                lines.append(described)
        if len(nodes) > self.config.max_nodes:
            lines.append(f"... {len(nodes) - self.config.max_nodes} more")
        extra = payload.get("data")
        if extra is not None:
            lines += ["", "Design data:", json.dumps(extra, indent=2, sort_keys=True, default=str)]
        return "\n".join(lines)

    def summarize(self, payload: Dict[str, Any], adapter_name: Optional[str] = None) -> str:
        adapter = self.resolve_adapter(adapter_name or payload.get("adapter"))
        system = self.config.system_prompt or DEFAULT_SYSTEM
        return adapter.summarize(self.build_prompt(payload), system=system)

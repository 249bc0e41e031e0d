# Explicit exports keep adapter discovery predictable.
from .anthropic import AnthropicAdapter
from .base import BaseAdapter
from .echo import EchoAdapter

__all__ = [
    "AnthropicAdapter",
    "BaseAdapter",
    "EchoAdapter",
]

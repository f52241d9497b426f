"""
Connection registry components.

Registry contract plus Redis and in-memory backends.
"""

from ws_fanout.components.registry.base import ConnectionRegistry, ConnectionRecord
from ws_fanout.components.registry.memory import InMemoryConnectionRegistry
from ws_fanout.components.registry.redis_registry import RedisConnectionRegistry

__all__ = [
    "ConnectionRegistry",
    "ConnectionRecord",
    "InMemoryConnectionRegistry",
    "RedisConnectionRegistry",
]

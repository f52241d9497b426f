"""
In-memory Connection Registry.

Per-process registry for single-node runs (local gateway mode) and tests.
Not durable: contents are lost on restart.
"""

from __future__ import annotations

from typing import AsyncIterator

from shared.config.logging import get_logger
from ws_fanout.components.registry.base import ConnectionRecord

logger = get_logger(__name__)


class InMemoryConnectionRegistry:
    """
    Dict-backed registry.

    Enumeration iterates over a copy of the keys, so concurrent put/delete
    during a fan-out never raises and never corrupts the yielded ids.
    Expired entries are skipped and evicted lazily while listing.
    """

    def __init__(self, ttl_seconds: int = 0) -> None:
        self._ttl_seconds = ttl_seconds
        self._records: dict[str, ConnectionRecord] = {}

    async def put(self, connection_id: str) -> None:
        self._records[connection_id] = ConnectionRecord.create(
            connection_id, self._ttl_seconds
        )

    async def delete(self, connection_id: str) -> None:
        self._records.pop(connection_id, None)

    async def list_all(self) -> AsyncIterator[str]:
        for connection_id in list(self._records):
            record = self._records.get(connection_id)
            if record is None:
                continue
            if record.is_expired():
                logger.debug("Evicting expired connection", connection_id=connection_id)
                self._records.pop(connection_id, None)
                continue
            yield connection_id

    async def get(self, connection_id: str) -> ConnectionRecord | None:
        return self._records.get(connection_id)

    async def count(self) -> int:
        return len(self._records)

    async def ping(self) -> bool:
        return True

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._records

"""
Redis-backed Connection Registry.

Layout: one string key per connection, ``{table}:{connection_id}``, holding
the JSON-encoded ConnectionRecord. When a TTL is configured the key is
written with ``EX`` so Redis evicts abandoned entries passively.

Enumeration uses SCAN: keys present for the whole scan are returned at
least once, keys added or removed mid-scan may or may not be. That is the
snapshot isolation the dispatcher needs; strict consistency is not required.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, AsyncIterator

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.config.logging import get_logger
from shared.utils.exceptions import RegistryUnavailable
from ws_fanout.components.registry.base import ConnectionRecord

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = get_logger(__name__)

# Errors that mean "store unreachable" as opposed to a programming error
UNAVAILABLE_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)

# Keys fetched per SCAN round trip
SCAN_COUNT = 500


class RedisConnectionRegistry:
    """
    Connection registry stored in Redis.

    Usage:
        registry = RedisConnectionRegistry(await get_redis_pool(), "fanout:connections")
        await registry.put("abc123")
        async for connection_id in registry.list_all():
            ...
    """

    def __init__(
        self,
        redis_client: "redis.Redis",
        table: str,
        ttl_seconds: int = 0,
    ) -> None:
        """
        Args:
            redis_client: Async Redis client (decode_responses=True).
            table: Key prefix identifying this registry.
            ttl_seconds: Passive expiry for entries; 0 disables.
        """
        self._redis = redis_client
        self._table = table
        self._ttl_seconds = ttl_seconds

    @property
    def table(self) -> str:
        return self._table

    def _key(self, connection_id: str) -> str:
        return f"{self._table}:{connection_id}"

    def _connection_id(self, key: str) -> str:
        return key[len(self._table) + 1:]

    async def put(self, connection_id: str) -> None:
        record = ConnectionRecord.create(connection_id, self._ttl_seconds)
        try:
            await self._redis.set(
                self._key(connection_id),
                json.dumps(record.to_dict()),
                ex=self._ttl_seconds or None,
            )
        except UNAVAILABLE_ERRORS as e:
            raise RegistryUnavailable("put", str(e), connection_id=connection_id) from e

    async def delete(self, connection_id: str) -> None:
        try:
            await self._redis.delete(self._key(connection_id))
        except UNAVAILABLE_ERRORS as e:
            raise RegistryUnavailable("delete", str(e), connection_id=connection_id) from e

    async def list_all(self) -> AsyncIterator[str]:
        # SCAN may return a key more than once across cursor steps
        seen: set[str] = set()
        try:
            async for key in self._redis.scan_iter(
                match=f"{self._table}:*",
                count=SCAN_COUNT,
            ):
                connection_id = self._connection_id(key)
                if connection_id in seen:
                    continue
                seen.add(connection_id)
                yield connection_id
        except UNAVAILABLE_ERRORS as e:
            raise RegistryUnavailable("list_all", str(e), table=self._table) from e

    async def get(self, connection_id: str) -> ConnectionRecord | None:
        try:
            raw = await self._redis.get(self._key(connection_id))
        except UNAVAILABLE_ERRORS as e:
            raise RegistryUnavailable("get", str(e), connection_id=connection_id) from e
        if raw is None:
            return None
        try:
            return ConnectionRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Unreadable connection record", connection_id=connection_id)
            return None

    async def count(self) -> int:
        total = 0
        async for _ in self.list_all():
            total += 1
        return total

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except UNAVAILABLE_ERRORS:
            return False

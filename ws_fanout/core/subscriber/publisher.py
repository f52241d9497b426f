"""
Stream producer helper.

Appends events to the inbound Redis Stream in the entry format the
StreamConsumer reads. Used by the CLI and by integration tests; any other
producer only has to write the same two fields.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ws_fanout.components.core.constants import FanoutConstants

if TYPE_CHECKING:
    import redis.asyncio as redis


def build_stream_fields(payload: Any, partition_key: str | None = None) -> dict[str, str]:
    """Encode a payload as stream entry fields."""
    fields = {FanoutConstants.STREAM_DATA_FIELD: json.dumps(payload, ensure_ascii=False)}
    if partition_key:
        fields[FanoutConstants.STREAM_PARTITION_FIELD] = partition_key
    return fields


async def publish_event(
    redis_client: "redis.Redis",
    stream: str,
    payload: Any,
    partition_key: str | None = None,
    maxlen: int | None = 10000,
) -> str:
    """
    Append one event to ``stream``.

    Args:
        redis_client: Async Redis client.
        stream: Stream name.
        payload: JSON-serializable event body.
        partition_key: Optional producer key, carried but not interpreted.
        maxlen: Approximate cap on stream length; None keeps everything.

    Returns:
        The stream entry id.
    """
    return await redis_client.xadd(
        stream,
        build_stream_fields(payload, partition_key),
        maxlen=maxlen,
        approximate=True,
    )

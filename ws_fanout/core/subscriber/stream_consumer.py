"""
Redis Stream Consumer.

Reads inbound events from the ``STREAM_NAME`` stream through a consumer
group and hands each read as one StreamBatch to the Entry Router.

Delivery:
- Entries are acknowledged (XACK) after their batch has been dispatched,
  including malformed entries, which can never succeed.
- If the dispatch aborts because the registry is unavailable, the entries
  stay in this consumer's pending list and the next cycle re-reads them
  (id "0") before taking new entries. Re-dispatching a batch is safe.
- On startup the pending list is drained first, recovering batches that
  were in flight when the previous process stopped.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any

from redis.exceptions import ResponseError

from shared.config.logging import get_logger
from shared.utils.exceptions import RegistryUnavailable
from ws_fanout.components.core.constants import FanoutConstants
from ws_fanout.components.events.types import StreamBatch, StreamRecord

if TYPE_CHECKING:
    import redis.asyncio as redis
    from ws_fanout.core.router import EntryRouter

logger = get_logger(__name__)

StreamEntry = tuple[str, dict[str, Any] | None]


def calculate_error_backoff(error_count: int) -> float:
    """
    Exponential backoff delay with jitter.

    Args:
        error_count: Number of consecutive errors (1-based).

    Returns:
        Delay in seconds with jitter applied.
    """
    exponential_delay = min(
        FanoutConstants.ERROR_BASE_DELAY * (2 ** max(error_count - 1, 0)),
        FanoutConstants.ERROR_MAX_DELAY,
    )
    # Jitter prevents consumers from reconnecting in lockstep
    jitter = exponential_delay * FanoutConstants.ERROR_JITTER_FACTOR * random.random()
    return exponential_delay + jitter


def arrival_time(message_id: str) -> float | None:
    """Epoch seconds encoded in a stream entry id (``<ms>-<seq>``)."""
    try:
        return int(message_id.split("-", 1)[0]) / 1000.0
    except (ValueError, AttributeError):
        return None


def entries_to_batch(entries: list[StreamEntry]) -> StreamBatch:
    """Convert XREADGROUP entries into a StreamBatch, preserving order."""
    records = []
    for message_id, fields in entries:
        fields = fields or {}
        arrived = arrival_time(message_id)
        kwargs: dict[str, Any] = {}
        if arrived is not None:
            kwargs["arrived_at"] = arrived
        records.append(
            StreamRecord(
                data=fields.get(FanoutConstants.STREAM_DATA_FIELD),
                encoding="utf-8",
                partition_key=fields.get(FanoutConstants.STREAM_PARTITION_FIELD),
                sequence_number=message_id,
                **kwargs,
            )
        )
    return StreamBatch(records=tuple(records))


class StreamConsumer:
    """
    Consumer-group reader feeding the Entry Router.

    Usage:
        consumer = StreamConsumer(redis_client, router, "fanout:events", "dispatchers", "node-1")
        task = asyncio.create_task(consumer.run(), name="stream_consumer")
    """

    def __init__(
        self,
        redis_client: "redis.Redis",
        router: "EntryRouter",
        stream: str,
        group: str,
        consumer: str,
        batch_size: int = 100,
        block_ms: int = 2000,
    ) -> None:
        self._redis = redis_client
        self._router = router
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._replay_pending = True
        self._error_count = 0
        self._batches_processed = 0

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "stream": self._stream,
            "group": self._group,
            "consumer": self._consumer,
            "batches_processed": self._batches_processed,
            "consecutive_errors": self._error_count,
            "replaying_pending": self._replay_pending,
        }

    async def ensure_group(self) -> None:
        """Create the consumer group (and stream) if missing."""
        try:
            # '$' starts a new group at the end of the stream; existing groups keep their offset
            await self._redis.xgroup_create(
                name=self._stream,
                groupname=self._group,
                id="$",
                mkstream=True,
            )
            logger.info("Created consumer group", stream=self._stream, group=self._group)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug("Consumer group already exists", stream=self._stream, group=self._group)

    async def read_entries(self) -> list[StreamEntry]:
        """
        Read the next batch of entries.

        While replaying, reads this consumer's pending list ("0"); once it
        is empty, switches to new entries (">").
        """
        start_id = "0" if self._replay_pending else ">"
        response = await self._redis.xreadgroup(
            groupname=self._group,
            consumername=self._consumer,
            streams={self._stream: start_id},
            count=self._batch_size,
            block=None if self._replay_pending else self._block_ms,
        )

        entries: list[StreamEntry] = []
        for _stream_name, messages in response or []:
            entries.extend((message_id, fields) for message_id, fields in messages)

        if self._replay_pending and not entries:
            self._replay_pending = False
        return entries

    async def process_entries(self, entries: list[StreamEntry]) -> bool:
        """
        Dispatch one read as a batch and acknowledge it.

        Returns:
            True if the entries were acknowledged, False if they were left pending.
        """
        if not entries:
            return True

        try:
            await self._router.dispatch(entries_to_batch(entries))
        except RegistryUnavailable:
            # Leave pending; replayed on the next cycle
            self._replay_pending = True
            return False

        await self._redis.xack(
            self._stream,
            self._group,
            *[message_id for message_id, _ in entries],
        )
        self._batches_processed += 1
        return True

    async def run_once(self) -> bool:
        """Read and process one batch. Returns False when processing was deferred."""
        entries = await self.read_entries()
        return await self.process_entries(entries)

    async def run(self) -> None:
        """Consume until cancelled."""
        await self.ensure_group()
        logger.info(
            "Starting stream consumer",
            stream=self._stream,
            group=self._group,
            consumer=self._consumer,
        )

        while True:
            try:
                if await self.run_once():
                    self._error_count = 0
                    continue
                await self._back_off("Dispatch deferred, registry unavailable")
            except asyncio.CancelledError:
                logger.info("Stream consumer cancelled")
                break
            except ResponseError as e:
                if "NOGROUP" in str(e):
                    logger.warning(
                        "Consumer group was deleted externally, recreating",
                        stream=self._stream,
                        group=self._group,
                    )
                    try:
                        await self.ensure_group()
                    except Exception as create_error:
                        logger.error(
                            "Failed to recreate consumer group",
                            error=str(create_error),
                        )
                        await self._back_off("Backing off after group recreation failure")
                    continue
                logger.error("Redis error in stream consumer loop", error=str(e))
                await self._back_off("Backing off after Redis error")
            except Exception as e:
                logger.error("Error in stream consumer loop", error=str(e), exc_info=True)
                await self._back_off("Backing off after error")

    async def _back_off(self, message: str) -> None:
        self._error_count += 1
        delay = calculate_error_backoff(self._error_count)
        logger.warning(message, delay=round(delay, 2), error_count=self._error_count)
        await asyncio.sleep(delay)

"""
Fan-Out Dispatcher.

Broadcasts every record of a stream batch to every connection in the
registry:

1. Decode the record; malformed records are logged and skipped.
2. Snapshot the registry once per batch (lazily, before the first valid record).
3. Push the same serialized bytes to every id in the snapshot, concurrently.
4. Prune ids the gateway reports as gone; log and skip transient failures.

One dead connection never stalls delivery to the others, and one malformed
record never stalls the rest of the batch.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from shared.config.logging import get_logger, mask_connection_id
from shared.utils.exceptions import (
    MalformedEvent,
    RegistryUnavailable,
    StaleTargetError,
    TransientPushError,
)
from ws_fanout.components.events.types import normalize_numbers

if TYPE_CHECKING:
    from ws_fanout.components.events.types import StreamBatch
    from ws_fanout.components.gateway.client import GatewayClient
    from ws_fanout.components.metrics.collector import MetricsCollector
    from ws_fanout.components.registry.base import ConnectionRegistry

logger = get_logger(__name__)


class PushOutcome(str, Enum):
    """Result of one push to one connection."""

    DELIVERED = "delivered"
    STALE_PRUNED = "stale_pruned"
    TRANSIENT_FAILURE = "transient_failure"


class SnapshotScope(str, Enum):
    """How often the registry is enumerated while dispatching a batch."""

    BATCH = "batch"
    EVENT = "event"


@dataclass
class DispatchReport:
    """Summary of one dispatch cycle."""

    events_received: int = 0
    events_malformed: int = 0
    events_broadcast: int = 0
    deliveries: int = 0
    stale_pruned: int = 0
    transient_failures: int = 0
    snapshots_taken: int = 0
    snapshot_size: int = 0

    def record(self, outcomes: dict[str, PushOutcome]) -> None:
        for outcome in outcomes.values():
            if outcome is PushOutcome.DELIVERED:
                self.deliveries += 1
            elif outcome is PushOutcome.STALE_PRUNED:
                self.stale_pruned += 1
            else:
                self.transient_failures += 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def serialize_payload(payload: Any) -> bytes:
    """
    Serialize a decoded payload for delivery.

    Matches JavaScript ``JSON.stringify`` output for the viewer: compact
    separators, raw UTF-8, and integral floats written as ints (``1.0`` -> ``1``).
    """
    data = json.dumps(normalize_numbers(payload), separators=(",", ":"), ensure_ascii=False)
    return data.encode("utf-8")


class FanOutDispatcher:
    """
    Delivers stream batches to every registered connection.

    Usage:
        dispatcher = FanOutDispatcher(registry, gateway)
        report = await dispatcher.dispatch(batch)

    Safe to run again on the same batch: a still-live connection may then
    receive an event twice, which at-most-once-per-cycle delivery accepts.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        gateway: "GatewayClient",
        metrics: "MetricsCollector | None" = None,
        max_concurrent_pushes: int = 50,
        snapshot_scope: SnapshotScope | str = SnapshotScope.BATCH,
    ) -> None:
        """
        Args:
            registry: Connection registry to enumerate and prune.
            gateway: Push primitive.
            metrics: Optional metrics collector.
            max_concurrent_pushes: Upper bound on in-flight pushes per event.
            snapshot_scope: Enumerate the registry once per batch or once per event.
        """
        if max_concurrent_pushes < 1:
            raise ValueError("max_concurrent_pushes must be at least 1")
        self._registry = registry
        self._gateway = gateway
        self._metrics = metrics
        self._max_concurrent_pushes = max_concurrent_pushes
        self._snapshot_scope = SnapshotScope(snapshot_scope)

    async def dispatch(self, batch: "StreamBatch") -> DispatchReport:
        """
        Broadcast every record of ``batch`` in arrival order.

        Raises:
            RegistryUnavailable: if the registry cannot be enumerated or a
                prune fails. Pushes already started for the current record
                still run to completion first.
        """
        report = DispatchReport(events_received=len(batch))
        self._count("event", "batches")
        self._count("event", "received", len(batch))

        snapshot: list[str] | None = None
        pruned: set[str] = set()

        for position, record in enumerate(batch.records):
            try:
                payload = record.decode()
            except MalformedEvent as e:
                report.events_malformed += 1
                self._count("event", "malformed")
                logger.warning(
                    "Skipping malformed event",
                    position=position,
                    **e.log_context,
                )
                continue

            data = serialize_payload(payload)

            if snapshot is None or self._snapshot_scope is SnapshotScope.EVENT:
                snapshot = await self.take_snapshot()
                pruned.clear()
                report.snapshots_taken += 1
                report.snapshot_size = len(snapshot)

            targets = [cid for cid in snapshot if cid not in pruned]
            outcomes = await self.broadcast(data, targets)

            pruned.update(
                cid for cid, outcome in outcomes.items()
                if outcome is PushOutcome.STALE_PRUNED
            )
            report.record(outcomes)
            report.events_broadcast += 1
            self._count("event", "broadcast")

            logger.debug(
                "Event broadcast",
                position=position,
                partition_key=record.partition_key,
                sequence_number=record.sequence_number,
                targets=len(targets),
            )

        logger.info("Batch dispatched", **report.to_dict())
        return report

    async def take_snapshot(self) -> list[str]:
        """Enumerate the registry once into a list of connection ids."""
        # Registry scans may yield an id more than once
        snapshot = list(dict.fromkeys([cid async for cid in self._registry.list_all()]))
        self._count("event", "snapshots")
        return snapshot

    async def broadcast(
        self,
        data: bytes,
        connection_ids: list[str],
    ) -> dict[str, PushOutcome]:
        """
        Push ``data`` to every connection concurrently.

        Every push settles independently. A RegistryUnavailable raised while
        pruning is re-raised only after all pushes have settled.

        Returns:
            Outcome per connection id.
        """
        if not connection_ids:
            return {}

        semaphore = asyncio.Semaphore(self._max_concurrent_pushes)

        async def bounded_push(connection_id: str) -> PushOutcome:
            async with semaphore:
                return await self._push(connection_id, data)

        results = await asyncio.gather(
            *(bounded_push(cid) for cid in connection_ids),
            return_exceptions=True,
        )

        outcomes: dict[str, PushOutcome] = {}
        registry_error: RegistryUnavailable | None = None

        for connection_id, result in zip(connection_ids, results):
            if isinstance(result, PushOutcome):
                outcomes[connection_id] = result
            elif isinstance(result, RegistryUnavailable):
                registry_error = registry_error or result
                outcomes[connection_id] = PushOutcome.TRANSIENT_FAILURE
            else:
                # Cancelled child task; the connection is retried by the next event
                logger.warning(
                    "Push did not complete",
                    connection_id=mask_connection_id(connection_id),
                    error=repr(result),
                )
                outcomes[connection_id] = PushOutcome.TRANSIENT_FAILURE

        if registry_error is not None:
            raise registry_error
        return outcomes

    async def _push(self, connection_id: str, data: bytes) -> PushOutcome:
        try:
            await self._gateway.send(connection_id, data)
        except StaleTargetError:
            await self._registry.delete(connection_id)
            self._count("push", "stale_pruned")
            logger.info(
                "Pruned stale connection",
                connection_id=mask_connection_id(connection_id),
            )
            return PushOutcome.STALE_PRUNED
        except TransientPushError as e:
            self._count("push", "transient_failed")
            logger.warning(
                "Push failed, skipping connection for this event",
                connection_id=mask_connection_id(connection_id),
                reason=e.reason,
            )
            return PushOutcome.TRANSIENT_FAILURE
        except Exception as e:
            # A gateway implementation leaked a raw error; treat it as transient
            self._count("push", "transient_failed")
            logger.warning(
                "Unexpected push error, skipping connection for this event",
                connection_id=mask_connection_id(connection_id),
                error=f"{type(e).__name__}: {e}",
            )
            return PushOutcome.TRANSIENT_FAILURE

        self._count("push", "delivered")
        return PushOutcome.DELIVERED

    def _count(self, group: str, name: str, amount: int = 1) -> None:
        if self._metrics is not None:
            self._metrics.increment(group, name, amount)

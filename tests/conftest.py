"""
Pytest configuration and fixtures for fan-out service tests.
"""

import asyncio
import base64
import json

import pytest

from shared.utils.exceptions import RegistryUnavailable, StaleTargetError, TransientPushError
from ws_fanout.components.core.constants import GatewayEventType
from ws_fanout.components.gateway.local import lifecycle_notification
from ws_fanout.components.metrics.collector import MetricsCollector
from ws_fanout.components.registry.memory import InMemoryConnectionRegistry
from ws_fanout.core.dispatcher import FanOutDispatcher
from ws_fanout.core.lifecycle import LifecycleHandler
from ws_fanout.core.router import EntryRouter


# =============================================================================
# Test doubles
# =============================================================================


class FakeGateway:
    """
    Gateway double.

    Ids in ``stale`` answer like a 410 Gone, ids in ``transient`` like a 500,
    ids in ``broken`` raise a raw exception. Everything else is delivered.
    """

    def __init__(self, stale=(), transient=(), broken=(), delay: float = 0.0):
        self.stale = set(stale)
        self.transient = set(transient)
        self.broken = set(broken)
        self.delay = delay
        self.attempts: list[str] = []
        self.sent: list[tuple[str, bytes]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, connection_id: str, data: bytes) -> None:
        self.attempts.append(connection_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if connection_id in self.stale:
                raise StaleTargetError(connection_id, status_code=410)
            if connection_id in self.transient:
                raise TransientPushError(connection_id, "HTTP 500", status_code=500)
            if connection_id in self.broken:
                raise ValueError("gateway bug")
            self.sent.append((connection_id, data))
        finally:
            self.in_flight -= 1

    def received(self, connection_id: str) -> list[bytes]:
        return [data for cid, data in self.sent if cid == connection_id]

    async def close(self) -> None:
        self.closed = True


class FailingDeleteRegistry(InMemoryConnectionRegistry):
    """In-memory registry whose deletes fail as if the store went away."""

    async def delete(self, connection_id: str) -> None:
        raise RegistryUnavailable("delete", "connection refused", connection_id=connection_id)


class FailingRegistry(InMemoryConnectionRegistry):
    """In-memory registry where every operation fails."""

    async def put(self, connection_id: str) -> None:
        raise RegistryUnavailable("put", "connection refused")

    async def delete(self, connection_id: str) -> None:
        raise RegistryUnavailable("delete", "connection refused")

    async def list_all(self):
        raise RegistryUnavailable("list_all", "connection refused")
        yield  # pragma: no cover

    async def ping(self) -> bool:
        return False


class CountingRegistry(InMemoryConnectionRegistry):
    """In-memory registry that counts enumerations."""

    def __init__(self, ttl_seconds: int = 0):
        super().__init__(ttl_seconds)
        self.enumerations = 0

    async def list_all(self):
        self.enumerations += 1
        async for connection_id in super().list_all():
            yield connection_id


# =============================================================================
# Raw trigger builders
# =============================================================================


def encode_payload(payload) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def kinesis_record(payload=None, *, data=None, sequence_number="1"):
    """One ``Records[i]`` entry of a managed-stream batch."""
    return {
        "eventSource": "aws:kinesis",
        "kinesis": {
            "data": data if data is not None else encode_payload(payload),
            "partitionKey": "call-123",
            "sequenceNumber": sequence_number,
            "approximateArrivalTimestamp": 1700000000.0,
        },
    }


def kinesis_event(*records):
    return {"Records": list(records)}


def connect_event(connection_id: str):
    return lifecycle_notification(connection_id, GatewayEventType.CONNECT)


def disconnect_event(connection_id: str):
    return lifecycle_notification(connection_id, GatewayEventType.DISCONNECT)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def registry():
    return InMemoryConnectionRegistry()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def dispatcher(registry, gateway, metrics):
    return FanOutDispatcher(registry, gateway, metrics)


@pytest.fixture
def router(registry, dispatcher, metrics):
    return EntryRouter(LifecycleHandler(registry, metrics), dispatcher, metrics)


async def registered(registry, *connection_ids):
    """Put ``connection_ids`` into ``registry`` and return it."""
    for connection_id in connection_ids:
        await registry.put(connection_id)
    return registry


async def registry_ids(registry) -> set[str]:
    return {connection_id async for connection_id in registry.list_all()}

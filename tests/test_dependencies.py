"""
Tests for service handle wiring.
"""

import pytest

from shared.config.settings import Settings
from ws_fanout.components.core import dependencies
from ws_fanout.components.core.dependencies import (
    create_gateway,
    create_registry,
    get_router,
    get_service,
    init_service,
    shutdown_service,
)
from ws_fanout.components.gateway.client import HttpGatewayClient
from ws_fanout.components.gateway.local import LocalWebSocketGateway
from ws_fanout.components.registry.memory import InMemoryConnectionRegistry
from ws_fanout.core.dispatcher import SnapshotScope
from tests.conftest import FakeGateway


def local_settings(**overrides) -> Settings:
    values = {
        "gateway_mode": "local",
        "registry_backend": "memory",
        "stream_consumer_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def reset_service(monkeypatch):
    monkeypatch.setattr(dependencies, "_service", None)


class TestFactories:

    def test_memory_registry(self):
        registry = create_registry(local_settings(connection_ttl_seconds=60))
        assert isinstance(registry, InMemoryConnectionRegistry)

    def test_redis_registry_requires_client(self):
        with pytest.raises(ValueError):
            create_registry(local_settings(registry_backend="redis"))

    def test_local_gateway(self):
        assert isinstance(create_gateway(local_settings()), LocalWebSocketGateway)

    @pytest.mark.asyncio
    async def test_http_gateway(self):
        gateway = create_gateway(local_settings(
            gateway_mode="http",
            api_gateway_endpoint="https://gw.example.com/dev",
        ))
        assert isinstance(gateway, HttpGatewayClient)
        await gateway.close()


class TestServiceLifecycle:

    def test_get_service_before_init(self):
        with pytest.raises(RuntimeError):
            get_service()

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self):
        first = await init_service(local_settings())
        second = await init_service(local_settings(registry_snapshot_scope="event"))

        assert first is second
        assert get_service() is first
        assert first.local_gateway is first.gateway

    @pytest.mark.asyncio
    async def test_invalid_configuration(self):
        with pytest.raises(RuntimeError, match="GATEWAY_MODE"):
            await init_service(local_settings(gateway_mode="smoke-signals"))

    @pytest.mark.asyncio
    async def test_injected_components(self):
        gateway = FakeGateway()
        registry = InMemoryConnectionRegistry()

        service = await init_service(
            local_settings(registry_snapshot_scope="event"),
            registry=registry,
            gateway=gateway,
        )

        assert service.registry is registry
        assert service.local_gateway is None
        assert service.dispatcher._snapshot_scope is SnapshotScope.EVENT

        await shutdown_service()

        assert gateway.closed
        with pytest.raises(RuntimeError):
            get_service()

    @pytest.mark.asyncio
    async def test_router_dependency(self):
        """Requests resolve the router from the handles; nothing else is exposed."""
        service = await init_service(local_settings(), gateway=FakeGateway())

        assert get_router() is service.router
        assert not hasattr(dependencies, "get_registry")
        assert not hasattr(dependencies, "get_metrics")

        await shutdown_service()

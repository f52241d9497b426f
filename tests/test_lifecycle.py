"""
Tests for connection lifecycle handling.
"""

import pytest

from shared.utils.exceptions import RegistryUnavailable
from ws_fanout.components.events.types import LifecycleNotification
from ws_fanout.core.lifecycle import LifecycleHandler
from tests.conftest import FailingRegistry, registered, registry_ids


def notification(connection_id, event_type, route_key=None):
    return LifecycleNotification(connection_id, event_type, route_key)


class TestLifecycleHandler:
    """Tests for CONNECT / DISCONNECT translation."""

    @pytest.mark.asyncio
    async def test_connect_registers(self, registry, metrics):
        handler = LifecycleHandler(registry, metrics)

        response = await handler.handle(notification("abc", "CONNECT", "$connect"))

        assert response == {"statusCode": 200}
        assert await registry_ids(registry) == {"abc"}
        assert metrics.get_snapshot()["lifecycle"]["connects"] == 1

    @pytest.mark.asyncio
    async def test_connect_twice_is_idempotent(self, registry):
        handler = LifecycleHandler(registry)

        await handler.handle(notification("abc", "CONNECT"))
        await handler.handle(notification("abc", "CONNECT"))

        assert await registry.count() == 1

    @pytest.mark.asyncio
    async def test_disconnect_removes(self, registry, metrics):
        await registered(registry, "abc", "other")
        handler = LifecycleHandler(registry, metrics)

        response = await handler.handle(notification("abc", "DISCONNECT", "$disconnect"))

        assert response == {"statusCode": 200}
        assert await registry_ids(registry) == {"other"}
        assert metrics.get_snapshot()["lifecycle"]["disconnects"] == 1

    @pytest.mark.asyncio
    async def test_disconnect_unknown_is_noop(self, registry):
        handler = LifecycleHandler(registry)

        response = await handler.handle(notification("never-seen", "DISCONNECT"))

        assert response == {"statusCode": 200}

    @pytest.mark.asyncio
    async def test_disconnect_before_connect_leaves_no_entry(self, registry):
        """A late CONNECT after DISCONNECT re-registers; the next push prunes it."""
        handler = LifecycleHandler(registry)

        await handler.handle(notification("abc", "DISCONNECT"))
        await handler.handle(notification("abc", "CONNECT"))

        assert await registry_ids(registry) == {"abc"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_type", ["MESSAGE", "", "RECONNECT"])
    async def test_other_events_acknowledged_without_action(self, registry, metrics, event_type):
        await registered(registry, "abc")
        handler = LifecycleHandler(registry, metrics)

        response = await handler.handle(notification("abc", event_type, "$default"))

        assert response == {"statusCode": 200}
        assert await registry_ids(registry) == {"abc"}
        assert metrics.get_snapshot()["lifecycle"]["ignored"] == 1

    @pytest.mark.asyncio
    async def test_missing_connection_id_ignored(self, registry, metrics):
        handler = LifecycleHandler(registry, metrics)

        response = await handler.handle(notification("", "CONNECT"))

        assert response == {"statusCode": 200}
        assert await registry.count() == 0
        assert metrics.get_snapshot()["lifecycle"]["ignored"] == 1

    @pytest.mark.asyncio
    async def test_registry_outage_propagates(self):
        handler = LifecycleHandler(FailingRegistry())

        with pytest.raises(RegistryUnavailable):
            await handler.handle(notification("abc", "CONNECT"))

        with pytest.raises(RegistryUnavailable):
            await handler.handle(notification("abc", "DISCONNECT"))

"""
Process-wide service handles.

The registry, gateway client, metrics collector and router are built once
at startup (FastAPI lifespan or CLI entry) and never replaced while the
process runs. Request handlers reach them through ``get_service()`` or the
FastAPI dependency helpers below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from shared.config.settings import Settings, settings as default_settings
from shared.infrastructure.redis_pool import get_redis_pool
from ws_fanout.components.gateway.client import GatewayClient, HttpGatewayClient
from ws_fanout.components.gateway.local import LocalWebSocketGateway
from ws_fanout.components.metrics.collector import MetricsCollector
from ws_fanout.components.registry.base import ConnectionRegistry
from ws_fanout.components.registry.memory import InMemoryConnectionRegistry
from ws_fanout.components.registry.redis_registry import RedisConnectionRegistry
from ws_fanout.core.dispatcher import FanOutDispatcher
from ws_fanout.core.lifecycle import LifecycleHandler
from ws_fanout.core.router import EntryRouter

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceHandles:
    """Immutable bundle of the objects shared by every invocation."""

    settings: Settings
    registry: ConnectionRegistry
    gateway: GatewayClient
    metrics: MetricsCollector
    lifecycle: LifecycleHandler
    dispatcher: FanOutDispatcher
    router: EntryRouter

    @property
    def local_gateway(self) -> LocalWebSocketGateway | None:
        if isinstance(self.gateway, LocalWebSocketGateway):
            return self.gateway
        return None


_service: ServiceHandles | None = None


def build_service(
    config: Settings,
    registry: ConnectionRegistry,
    gateway: GatewayClient,
    metrics: MetricsCollector | None = None,
) -> ServiceHandles:
    """Wire the core components together without touching global state."""
    metrics = metrics or MetricsCollector()
    lifecycle = LifecycleHandler(registry, metrics)
    dispatcher = FanOutDispatcher(
        registry,
        gateway,
        metrics,
        max_concurrent_pushes=config.fanout_max_concurrent_pushes,
        snapshot_scope=config.registry_snapshot_scope,
    )
    router = EntryRouter(lifecycle, dispatcher, metrics)
    return ServiceHandles(
        settings=config,
        registry=registry,
        gateway=gateway,
        metrics=metrics,
        lifecycle=lifecycle,
        dispatcher=dispatcher,
        router=router,
    )


def create_registry(
    config: Settings,
    redis_client: "redis.Redis | None" = None,
) -> ConnectionRegistry:
    """Build the configured registry backend."""
    if config.registry_backend == "memory":
        return InMemoryConnectionRegistry(ttl_seconds=config.connection_ttl_seconds)
    if redis_client is None:
        raise ValueError("Redis registry requires a Redis client")
    return RedisConnectionRegistry(
        redis_client,
        config.connection_table,
        ttl_seconds=config.connection_ttl_seconds,
    )


def create_gateway(config: Settings) -> GatewayClient:
    """Build the configured gateway client."""
    if config.gateway_mode == "local":
        return LocalWebSocketGateway()
    return HttpGatewayClient(
        config.api_gateway_endpoint,
        timeout=config.gateway_timeout,
        max_connections=config.gateway_max_connections,
    )


async def init_service(
    config: Settings | None = None,
    *,
    registry: ConnectionRegistry | None = None,
    gateway: GatewayClient | None = None,
) -> ServiceHandles:
    """
    Build the process-wide handles once.

    Calling it again returns the existing handles unchanged.

    Raises:
        RuntimeError: if the configuration is invalid.
    """
    global _service
    if _service is not None:
        return _service

    config = config or default_settings
    errors = config.validate_runtime()
    if errors:
        raise RuntimeError("Invalid configuration: " + "; ".join(errors))

    if registry is None:
        redis_client = await get_redis_pool() if config.registry_backend == "redis" else None
        registry = create_registry(config, redis_client)
    if gateway is None:
        gateway = create_gateway(config)

    _service = build_service(config, registry, gateway)
    logger.info(
        "Service handles initialized",
        registry=type(registry).__name__,
        gateway=type(gateway).__name__,
        snapshot_scope=config.registry_snapshot_scope,
    )
    return _service


def get_service() -> ServiceHandles:
    """
    Get the process-wide handles.

    Raises:
        RuntimeError: if init_service() has not run.
    """
    if _service is None:
        raise RuntimeError("Service not initialized; call init_service() at startup")
    return _service


async def shutdown_service() -> None:
    """Release the gateway client and forget the handles."""
    global _service
    if _service is None:
        return
    try:
        await _service.gateway.close()
    except Exception as e:
        logger.warning("Error closing gateway client", error=str(e))
    _service = None


# =============================================================================
# FastAPI dependencies
# =============================================================================


def get_router() -> EntryRouter:
    return get_service().router

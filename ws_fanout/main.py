"""
Fan-out Service main application.

Exposes the Entry Router over HTTP (``POST /invoke``), runs the Redis Stream
consumer in the background, and in local gateway mode accepts viewer
WebSocket connections on ``/ws``.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.config.settings import settings
from shared.config.logging import setup_logging, ws_fanout_logger as logger
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.infrastructure.redis_pool import (
    check_redis_health,
    close_redis_pool,
    get_redis_pool,
)
from shared.utils.exceptions import RegistryUnavailable
from ws_fanout import __version__
from ws_fanout.components.core.constants import DEFAULT_ALLOWED_ORIGINS
from ws_fanout.components.core.dependencies import (
    get_router,
    get_service,
    init_service,
    shutdown_service,
)
from ws_fanout.components.gateway.local import LocalGatewayEndpoint
from ws_fanout.components.metrics.collector import generate_prometheus_metrics
from ws_fanout.core.router import EntryRouter
from ws_fanout.core.subscriber.stream_consumer import StreamConsumer

_consumer: StreamConsumer | None = None


# =============================================================================
# Lifespan and background tasks
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the service handles once, then starts the stream consumer task.
    """
    global _consumer

    setup_logging()
    logger.info(
        "Starting fan-out service",
        port=settings.fanout_port,
        env=settings.environment,
        gateway_mode=settings.gateway_mode,
        registry_backend=settings.registry_backend,
    )

    service = await init_service(settings)

    consumer_task: asyncio.Task | None = None
    if settings.stream_consumer_enabled:
        _consumer = StreamConsumer(
            await get_redis_pool(),
            service.router,
            stream=settings.stream_name,
            group=settings.stream_consumer_group,
            consumer=settings.stream_consumer_name,
            batch_size=settings.stream_batch_size,
            block_ms=settings.stream_block_ms,
        )
        consumer_task = asyncio.create_task(_consumer.run(), name="stream_consumer")

    yield

    logger.info("Shutting down fan-out service")
    if consumer_task is not None:
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
    _consumer = None

    local_gateway = service.local_gateway
    if local_gateway is not None:
        await local_gateway.close()

    await shutdown_service()
    await close_redis_pool()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="WS Fan-out Service",
    description="Broadcasts stream events to every live push connection",
    version=__version__,
    lifespan=lifespan,
)

ws_allowed_origins = (
    [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.allowed_origins
    else list(DEFAULT_ALLOWED_ORIGINS)
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ws_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(RegistryUnavailable)
async def registry_unavailable_handler(request: Request, exc: RegistryUnavailable):
    """Ask the caller to retry the whole invocation."""
    return JSONResponse(
        status_code=503,
        content={"statusCode": 503, "error": exc.detail},
    )


# =============================================================================
# Invocation entry point
# =============================================================================


@app.post("/invoke")
async def invoke(request: Request, router: EntryRouter = Depends(get_router)):
    """
    Route one raw trigger (gateway notification or stream batch).

    Bodies that are not JSON are treated as unrecognized triggers.
    """
    body = await request.body()
    try:
        raw = json.loads(body)
    except ValueError:
        raw = body
    return await router.route(raw)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Basic health check endpoint."""
    service = get_service()
    local_gateway = service.local_gateway
    return {
        "status": "healthy",
        "service": "ws-fanout",
        "version": app.version,
        "environment": settings.environment,
        "gateway_mode": settings.gateway_mode,
        "local_connections": local_gateway.connection_count if local_gateway else None,
    }


@app.get("/ws/health/detailed")
async def detailed_health_check():
    """Detailed health check with registry, Redis and consumer status."""
    service = get_service()
    checks = {
        "service": "ws-fanout",
        "environment": settings.environment,
        "metrics": service.metrics.get_snapshot(),
        "dependencies": {},
        "consumer": _consumer.stats if _consumer else None,
    }
    all_healthy = True

    registry_ok = await service.registry.ping()
    checks["dependencies"]["registry"] = {"status": "healthy" if registry_ok else "unhealthy"}
    if not registry_ok:
        all_healthy = False

    if settings.registry_backend == "redis" or settings.stream_consumer_enabled:
        redis_health = await check_redis_health()
        checks["dependencies"]["redis"] = redis_health
        if redis_health["status"] != "healthy":
            all_healthy = False

    checks["status"] = "healthy" if all_healthy else "degraded"

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks


@app.get("/ws/metrics")
async def prometheus_metrics():
    """Prometheus-compatible metrics endpoint."""
    service = get_service()
    try:
        registry_size = await service.registry.count()
    except RegistryUnavailable:
        registry_size = None
    return PlainTextResponse(
        content=generate_prometheus_metrics(service.metrics, registry_size),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# =============================================================================
# Local gateway WebSocket endpoint
# =============================================================================


@app.websocket("/ws")
async def viewer_websocket(websocket: WebSocket):
    """
    Viewer connection endpoint (local gateway mode only).

    Each socket is registered on connect and removed on disconnect; events
    from the stream are pushed to it as JSON text frames.
    """
    service = get_service()
    local_gateway = service.local_gateway
    if local_gateway is None:
        await websocket.close(code=1008, reason="Local gateway disabled")
        return

    endpoint = LocalGatewayEndpoint(websocket, local_gateway, service.router)
    await endpoint.run()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ws_fanout.main:app",
        host="0.0.0.0",
        port=settings.fanout_port,
        reload=True,
    )

"""
WS Fan-out CLI.

Operator commands for running the service, feeding the event stream and
inspecting the connection registry.
"""

import asyncio
import json
import sys
import time

import typer
from rich.console import Console
from rich.table import Table

from shared.config.settings import settings

app = typer.Typer(
    name="ws-fanout",
    help="Realtime broadcast fan-out CLI",
    add_completion=False,
)
console = Console()


def _parse_payload(payload: str):
    try:
        return json.loads(payload)
    except ValueError as e:
        console.print(f"[red]✗ Payload is not valid JSON: {e}[/red]")
        raise typer.Exit(1)


async def _redis_registry():
    """Registry handle for commands that inspect a shared Redis registry."""
    from shared.infrastructure.redis_pool import get_redis_pool
    from ws_fanout.components.core.dependencies import create_registry

    if settings.registry_backend != "redis":
        console.print("[red]The in-memory registry lives inside the server process; "
                      "set REGISTRY_BACKEND=redis to inspect it from the CLI[/red]")
        raise typer.Exit(1)
    return create_registry(settings, await get_redis_pool())


# =============================================================================
# Service Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(settings.fanout_port, help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the fan-out service."""
    import uvicorn

    errors = settings.validate_runtime()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Starting fan-out service on {host}:{port}[/blue]")
    uvicorn.run("ws_fanout.main:app", host=host, port=port, reload=reload)


# =============================================================================
# Stream Commands
# =============================================================================

@app.command()
def publish(
    payload: str = typer.Argument(..., help='JSON payload, e.g. \'{"call-id": "123"}\''),
    partition_key: str = typer.Option(None, "--partition-key", "-k", help="Producer partition key"),
    stream: str = typer.Option(settings.stream_name, help="Target stream"),
):
    """Append one event to the inbound stream."""
    body = _parse_payload(payload)

    async def _publish():
        from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool
        from ws_fanout.core.subscriber.publisher import publish_event

        try:
            redis = await get_redis_pool()
            entry_id = await publish_event(redis, stream, body, partition_key)
            console.print(f"[green]✓ Published {entry_id} to {stream}[/green]")
        except Exception as e:
            console.print(f"[red]✗ Publish failed: {e}[/red]")
            raise typer.Exit(1)
        finally:
            await close_redis_pool()

    asyncio.run(_publish())


# =============================================================================
# Registry Commands
# =============================================================================

@app.command()
def connections(
    limit: int = typer.Option(50, help="Max ids to show"),
):
    """List registered connection ids."""

    async def _list():
        from shared.infrastructure.redis_pool import close_redis_pool

        try:
            registry = await _redis_registry()
            ids = [connection_id async for connection_id in registry.list_all()]
        finally:
            await close_redis_pool()

        if not ids:
            console.print("[yellow]No registered connections[/yellow]")
            return

        table = Table(title=f"Connections in '{settings.connection_table}'")
        table.add_column("Connection Id", style="cyan")
        for connection_id in ids[:limit]:
            table.add_row(connection_id)
        if len(ids) > limit:
            table.add_row(f"... and {len(ids) - limit} more")

        console.print(table)
        console.print(f"[green]{len(ids)} registered[/green]")

    asyncio.run(_list())


@app.command()
def prune(
    connection_id: str = typer.Argument(..., help="Connection id to remove"),
):
    """Remove one connection id from the registry."""

    async def _prune():
        from shared.infrastructure.redis_pool import close_redis_pool

        try:
            registry = await _redis_registry()
            await registry.delete(connection_id)
            console.print(f"[green]✓ Removed {connection_id}[/green]")
        finally:
            await close_redis_pool()

    asyncio.run(_prune())


# =============================================================================
# Viewer Commands
# =============================================================================

@app.command()
def watch(
    url: str = typer.Option(f"ws://localhost:{settings.fanout_port}/ws", help="Viewer WebSocket URL"),
):
    """Connect as a viewer and print every delivered event."""
    from ws_fanout.viewer import format_message

    async def _watch():
        import websockets

        console.print(f"[blue]Watching {url} (Ctrl+C to stop)[/blue]")
        try:
            async with websockets.connect(url, close_timeout=5) as ws:
                async for raw in ws:
                    try:
                        message = json.loads(raw)
                    except ValueError:
                        console.print(f"[yellow]{raw}[/yellow]")
                        continue
                    console.rule()
                    console.print(format_message(message), end="", markup=False)
        except Exception as e:
            console.print(f"[red]✗ Connection failed: {e}[/red]")
            raise typer.Exit(1)

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("[blue]Stopped[/blue]")


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    base_url: str = typer.Option(f"http://localhost:{settings.fanout_port}", help="Service base URL"),
):
    """Check service and Redis health."""
    import httpx

    async def _health():
        from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool

        table = Table(title="Service Health")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Response Time", style="yellow")

        async with httpx.AsyncClient(timeout=5.0) as client:
            for name, path in (("Fan-out", "/ws/health"), ("Fan-out (detailed)", "/ws/health/detailed")):
                try:
                    start = time.time()
                    response = await client.get(base_url + path)
                    elapsed = (time.time() - start) * 1000
                    if response.status_code == 200:
                        table.add_row(name, "✓ Healthy", f"{elapsed:.0f}ms")
                    else:
                        table.add_row(name, f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")
                except httpx.HTTPError as e:
                    table.add_row(name, f"✗ {type(e).__name__}", "-")

        try:
            start = time.time()
            redis = await get_redis_pool()
            await redis.ping()
            elapsed = (time.time() - start) * 1000
            table.add_row("Redis", "✓ Healthy", f"{elapsed:.0f}ms")
        except Exception as e:
            table.add_row("Redis", f"✗ {type(e).__name__}", "-")
        finally:
            await close_redis_pool()

        console.print(table)

    asyncio.run(_health())


@app.command()
def version():
    """Show version information."""
    from ws_fanout import __version__

    table = Table(title="WS Fan-out Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Service", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()

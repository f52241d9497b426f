"""
In-process WebSocket gateway.

Single-node alternative to a managed gateway: browsers connect straight to
the service's ``/ws`` endpoint. The endpoint assigns each socket an id and
emits the same CONNECT / DISCONNECT notifications a managed gateway would,
so the Entry Router behaves identically in both modes.

Sockets only exist in the process that accepted them, so this mode pairs
with the in-memory registry; ``Settings.validate_runtime`` rejects it with
the Redis backend.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.config.logging import get_logger, mask_connection_id
from shared.utils.exceptions import StaleTargetError, TransientPushError
from ws_fanout.components.core.constants import GatewayEventType

if TYPE_CHECKING:
    from ws_fanout.core.router import EntryRouter

logger = get_logger(__name__)


def is_ws_connected(ws: WebSocket) -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette only exposes CONNECTING / CONNECTED / DISCONNECTED, so a socket
    may still look connected briefly after the peer went away.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


def lifecycle_notification(
    connection_id: str,
    event_type: str,
    body: str | None = None,
) -> dict[str, Any]:
    """Build a notification in the gateway's ``requestContext`` shape."""
    route_keys = {
        GatewayEventType.CONNECT: "$connect",
        GatewayEventType.DISCONNECT: "$disconnect",
    }
    notification: dict[str, Any] = {
        "requestContext": {
            "connectionId": connection_id,
            "eventType": event_type,
            "routeKey": route_keys.get(event_type, "$default"),
        },
    }
    if body is not None:
        notification["body"] = body
    return notification


class LocalWebSocketGateway:
    """
    Holds the sockets of this process and implements the push primitive.

    An id with no socket, or whose socket is closed, is reported as a stale
    target so the dispatcher prunes it from the registry.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}

    def register(self, websocket: WebSocket) -> str:
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        return connection_id

    def unregister(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def send(self, connection_id: str, data: bytes) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None or not is_ws_connected(websocket):
            self.unregister(connection_id)
            raise StaleTargetError(connection_id)
        try:
            await websocket.send_text(data.decode("utf-8"))
        except (WebSocketDisconnect, RuntimeError) as e:
            # Starlette raises RuntimeError when sending on a closed socket
            self.unregister(connection_id)
            raise StaleTargetError(connection_id, reason=str(e)) from e
        except Exception as e:
            raise TransientPushError(connection_id, f"{type(e).__name__}: {e}") from e

    async def close(self) -> None:
        for connection_id, websocket in list(self._sockets.items()):
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except RuntimeError:
                pass
            self.unregister(connection_id)


class LocalGatewayEndpoint:
    """
    Drives one client socket through its lifecycle.

    Usage:
        endpoint = LocalGatewayEndpoint(websocket, gateway, router)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        gateway: LocalWebSocketGateway,
        router: "EntryRouter",
    ) -> None:
        self.websocket = websocket
        self.gateway = gateway
        self.router = router
        self.connection_id: str | None = None

    async def run(self) -> None:
        await self.websocket.accept()
        self.connection_id = self.gateway.register(self.websocket)
        logger.info(
            "Client connected",
            connection_id=mask_connection_id(self.connection_id),
        )

        try:
            await self.router.route(
                lifecycle_notification(self.connection_id, GatewayEventType.CONNECT)
            )
            while True:
                body = await self.websocket.receive_text()
                await self.router.route(
                    lifecycle_notification(
                        self.connection_id, GatewayEventType.MESSAGE, body
                    )
                )
        except WebSocketDisconnect:
            pass
        finally:
            await self._disconnect()

    async def _disconnect(self) -> None:
        if self.connection_id is None:
            return
        self.gateway.unregister(self.connection_id)
        try:
            await self.router.route(
                lifecycle_notification(self.connection_id, GatewayEventType.DISCONNECT)
            )
        except Exception as e:
            # The registry entry is pruned on the next failed push
            logger.warning(
                "Disconnect notification failed",
                connection_id=mask_connection_id(self.connection_id),
                error=str(e),
            )
        logger.info(
            "Client disconnected",
            connection_id=mask_connection_id(self.connection_id),
        )

"""
Gateway components.

The push-to-connection primitive: management API client and in-process
WebSocket gateway.
"""

from ws_fanout.components.gateway.client import GatewayClient, HttpGatewayClient
from ws_fanout.components.gateway.local import (
    LocalWebSocketGateway,
    LocalGatewayEndpoint,
    is_ws_connected,
    lifecycle_notification,
)

__all__ = [
    "GatewayClient",
    "HttpGatewayClient",
    "LocalWebSocketGateway",
    "LocalGatewayEndpoint",
    "is_ws_connected",
    "lifecycle_notification",
]

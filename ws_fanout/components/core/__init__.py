"""
Core components: constants and process-wide service handles.

Import ``ws_fanout.components.core.dependencies`` directly; it wires the
whole service together and is kept out of this package's namespace.
"""

from ws_fanout.components.core.constants import (
    FanoutConstants,
    GatewayEventType,
    HTTP_OK,
    DEFAULT_ALLOWED_ORIGINS,
)

__all__ = [
    "FanoutConstants",
    "GatewayEventType",
    "HTTP_OK",
    "DEFAULT_ALLOWED_ORIGINS",
]

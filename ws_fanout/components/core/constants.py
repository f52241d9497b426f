"""
Fan-out Service Constants.

Centralized constants with the rationale for each value.
"""

from typing import Final

__all__ = [
    "GatewayEventType",
    "FanoutConstants",
    "HTTP_OK",
    "DEFAULT_ALLOWED_ORIGINS",
]


class GatewayEventType:
    """
    Lifecycle event types emitted by the connection gateway.

    Values are the ``requestContext.eventType`` strings of a managed
    WebSocket gateway notification.
    """

    CONNECT: Final[str] = "CONNECT"
    DISCONNECT: Final[str] = "DISCONNECT"
    MESSAGE: Final[str] = "MESSAGE"


class FanoutConstants:
    """
    Operational constants.

    Values that can be tuned per deployment live in shared.config.settings;
    the ones here are protocol facts or internal implementation details.
    """

    # ==========================================================================
    # Gateway protocol
    # ==========================================================================

    # STALE_TARGET_STATUS: 410 Gone
    # The management API answers 410 when the connection id no longer exists.
    # It is the only status that prunes a registry entry.
    STALE_TARGET_STATUS: Final[int] = 410

    # Path template of the management API "post to connection" call
    CONNECTIONS_PATH: Final[str] = "/@connections/{connection_id}"

    # ==========================================================================
    # Trigger shapes
    # ==========================================================================

    LIFECYCLE_KEY: Final[str] = "requestContext"
    RECORDS_KEY: Final[str] = "Records"
    STREAM_RECORD_KEY: Final[str] = "kinesis"

    # ==========================================================================
    # Stream consumer
    # ==========================================================================

    # Field names of Redis Stream entries written by producers
    STREAM_DATA_FIELD: Final[str] = "data"
    STREAM_PARTITION_FIELD: Final[str] = "partition_key"

    # Backoff after consumer errors: exponential, capped, with jitter
    ERROR_BASE_DELAY: Final[float] = 1.0
    ERROR_MAX_DELAY: Final[float] = 30.0
    ERROR_JITTER_FACTOR: Final[float] = 0.3

    # ==========================================================================
    # Logging
    # ==========================================================================

    # Max characters of a malformed payload echoed into logs
    MALFORMED_PREVIEW_CHARS: Final[int] = 120


HTTP_OK: Final[int] = 200

# Origins allowed to open the local gateway WebSocket in development
DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)

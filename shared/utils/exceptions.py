"""
Error taxonomy for the fan-out service.

Usage:
    from shared.utils.exceptions import RegistryUnavailable, StaleTargetError

    raise RegistryUnavailable("put", connection_id=connection_id)
    raise StaleTargetError(connection_id, status_code=410)

Only RegistryUnavailable ever aborts an invocation. The other errors are
recovered locally by the component that catches them.
"""

from typing import Any


class FanoutError(Exception):
    """
    Base exception carrying structured context for logging.

    Handlers log ``error.log_context`` as keyword data, e.g.
    ``logger.warning(str(error), **error.log_context)``.
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail)
        self.detail = detail
        self.log_context = log_context


# =============================================================================
# Registry errors
# =============================================================================


class RegistryUnavailable(FanoutError):
    """
    Backing store unreachable.

    Aborts the current invocation. All registry operations are idempotent,
    so the caller may retry the whole invocation.
    """

    def __init__(self, operation: str, reason: str | None = None, **log_context: Any):
        detail = f"Connection registry unavailable during {operation}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail, operation=operation, **log_context)
        self.operation = operation


# =============================================================================
# Event errors
# =============================================================================


class MalformedEvent(FanoutError):
    """
    Stream record payload could not be decoded.

    The record is skipped and never retried.
    """

    def __init__(self, reason: str, sequence_number: str | None = None, **log_context: Any):
        super().__init__(
            f"Malformed event: {reason}",
            sequence_number=sequence_number,
            **log_context,
        )
        self.reason = reason
        self.sequence_number = sequence_number


# =============================================================================
# Push errors
# =============================================================================


class PushError(FanoutError):
    """Base for failures reported by the gateway send primitive."""

    def __init__(self, detail: str, connection_id: str, **log_context: Any):
        super().__init__(detail, connection_id=connection_id, **log_context)
        self.connection_id = connection_id


class StaleTargetError(PushError):
    """
    The gateway reports the target as permanently gone (HTTP 410 or equivalent).

    Routine condition: the connection is pruned from the registry.
    """

    def __init__(self, connection_id: str, **log_context: Any):
        super().__init__(
            f"Connection {connection_id} is gone",
            connection_id,
            **log_context,
        )


class TransientPushError(PushError):
    """
    Any other push failure (network error, throttling, 5xx).

    The connection is skipped for this event only.
    """

    def __init__(self, connection_id: str, reason: str, **log_context: Any):
        super().__init__(
            f"Push to {connection_id} failed: {reason}",
            connection_id,
            reason=reason,
            **log_context,
        )
        self.reason = reason

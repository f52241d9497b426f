"""
Connection Lifecycle Handling.

Translates gateway lifecycle notifications into registry mutations:

    UNKNOWN   --CONNECT-->     CONNECTED   (put)
    CONNECTED --DISCONNECT-->  UNKNOWN     (delete)

No state is kept between notifications; the registry is the only record.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from shared.config.logging import get_logger, mask_connection_id
from ws_fanout.components.core.constants import HTTP_OK

if TYPE_CHECKING:
    from ws_fanout.components.events.types import LifecycleNotification
    from ws_fanout.components.metrics.collector import MetricsCollector
    from ws_fanout.components.registry.base import ConnectionRegistry

logger = get_logger(__name__)


class LifecycleHandler:
    """
    Reacts to connect/disconnect notifications.

    Always acknowledges the gateway with success: a disconnect for an id
    that was never registered is a no-op, and other event types (messages
    on the default route) are acknowledged without action.
    RegistryUnavailable propagates so the gateway can retry.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self._registry = registry
        self._metrics = metrics

    async def handle(self, notification: "LifecycleNotification") -> dict[str, Any]:
        """
        Apply one notification to the registry.

        Returns:
            Gateway acknowledgment ``{"statusCode": 200}``.

        Raises:
            RegistryUnavailable: if the registry write fails.
        """
        connection_id = notification.connection_id

        if not connection_id:
            self._count("ignored")
            logger.warning(
                "Lifecycle notification without connection id",
                event_type=notification.event_type,
            )
        elif notification.is_connect:
            await self._registry.put(connection_id)
            self._count("connects")
            logger.info(
                "Connection registered",
                connection_id=mask_connection_id(connection_id),
            )
        elif notification.is_disconnect:
            await self._registry.delete(connection_id)
            self._count("disconnects")
            logger.info(
                "Connection removed",
                connection_id=mask_connection_id(connection_id),
            )
        else:
            self._count("ignored")
            logger.debug(
                "Lifecycle notification ignored",
                event_type=notification.event_type,
                route_key=notification.route_key,
                connection_id=mask_connection_id(connection_id),
            )

        return {"statusCode": HTTP_OK}

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment("lifecycle", name)

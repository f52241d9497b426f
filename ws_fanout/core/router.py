"""
Entry Router - single entry point for every invocation.

Classifies the raw trigger once by its structural shape and hands the
resolved variant to the lifecycle handler or the dispatcher. Downstream code
never re-inspects the raw trigger.

Usage:
    router = EntryRouter(lifecycle_handler, dispatcher)
    response = await router.route(raw_trigger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from shared.config.logging import get_logger
from shared.infrastructure.correlation import invocation_scope
from shared.utils.exceptions import RegistryUnavailable
from ws_fanout.components.core.constants import HTTP_OK
from ws_fanout.components.events.types import (
    LifecycleNotification,
    StreamBatch,
    Trigger,
    UnrecognizedTrigger,
    classify_trigger,
)

if TYPE_CHECKING:
    from ws_fanout.components.metrics.collector import MetricsCollector
    from ws_fanout.core.dispatcher import FanOutDispatcher
    from ws_fanout.core.lifecycle import LifecycleHandler

logger = get_logger(__name__)


class EntryRouter:
    """
    Routes invocations to the lifecycle handler or the dispatcher.

    Every invocation returns ``{"statusCode": 200}`` unless the registry is
    unreachable, in which case RegistryUnavailable propagates so the caller
    can retry the whole invocation.
    """

    def __init__(
        self,
        lifecycle: "LifecycleHandler",
        dispatcher: "FanOutDispatcher",
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._metrics = metrics

    @staticmethod
    def classify(raw: Any) -> Trigger:
        """Resolve a raw payload into its trigger variant."""
        return classify_trigger(raw)

    async def route(self, raw: Any) -> dict[str, Any]:
        """Classify and dispatch one raw invocation payload."""
        return await self.dispatch(self.classify(raw))

    async def dispatch(self, trigger: Trigger) -> dict[str, Any]:
        """Dispatch an already classified trigger."""
        with invocation_scope():
            try:
                if isinstance(trigger, LifecycleNotification):
                    return await self._lifecycle.handle(trigger)

                if isinstance(trigger, StreamBatch):
                    report = await self._dispatcher.dispatch(trigger)
                    return {"statusCode": HTTP_OK, "report": report.to_dict()}

                return self._ignore(trigger)
            except RegistryUnavailable as e:
                if self._metrics is not None:
                    self._metrics.increment_registry_unavailable()
                logger.error(
                    "Invocation aborted, registry unavailable",
                    trigger=type(trigger).__name__,
                    **e.log_context,
                )
                raise

    def _ignore(self, trigger: UnrecognizedTrigger) -> dict[str, Any]:
        if self._metrics is not None:
            self._metrics.increment_unrecognized()
        logger.info("Ignoring unrecognized trigger", shape=trigger.shape)
        return {"statusCode": HTTP_OK}

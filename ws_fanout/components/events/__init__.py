"""
Event handling components.

Trigger classification and payload helpers.
"""

from ws_fanout.components.events.types import (
    LifecycleNotification,
    StreamRecord,
    StreamBatch,
    UnrecognizedTrigger,
    Trigger,
    classify_trigger,
    normalize_numbers,
)

__all__ = [
    "LifecycleNotification",
    "StreamRecord",
    "StreamBatch",
    "UnrecognizedTrigger",
    "Trigger",
    "classify_trigger",
    "normalize_numbers",
]

"""
Fan-out Service Core Module.

- lifecycle.py: CONNECT / DISCONNECT notifications → registry writes
- dispatcher.py: stream batches → registry snapshot → concurrent pushes
- router.py: single entry point, structural trigger classification
- subscriber/: Redis Stream consumer feeding batches into the router
"""

from ws_fanout.core.lifecycle import LifecycleHandler
from ws_fanout.core.dispatcher import (
    FanOutDispatcher,
    DispatchReport,
    PushOutcome,
    SnapshotScope,
    serialize_payload,
)
from ws_fanout.core.router import EntryRouter

__all__ = [
    "LifecycleHandler",
    "FanOutDispatcher",
    "DispatchReport",
    "PushOutcome",
    "SnapshotScope",
    "serialize_payload",
    "EntryRouter",
]

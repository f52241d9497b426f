"""
Stream subscriber module.

- stream_consumer.py: consumer-group reader feeding the Entry Router
- publisher.py: producer helper writing the same entry format
"""

from ws_fanout.core.subscriber.stream_consumer import (
    StreamConsumer,
    calculate_error_backoff,
    entries_to_batch,
)
from ws_fanout.core.subscriber.publisher import publish_event, build_stream_fields

__all__ = [
    "StreamConsumer",
    "calculate_error_backoff",
    "entries_to_batch",
    "publish_event",
    "build_stream_fields",
]

"""
Trigger Value Objects.

Every invocation of the Entry Router carries exactly one of:

- LifecycleNotification: the gateway reports a connect / disconnect / message
- StreamBatch: a batch of inbound stream records to broadcast
- UnrecognizedTrigger: anything else

``classify_trigger`` decides the variant from the structural shape of the raw
mapping only; payload contents are never inspected at this boundary.
"""

from __future__ import annotations

import base64
import binascii
import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from shared.utils.exceptions import MalformedEvent
from ws_fanout.components.core.constants import FanoutConstants, GatewayEventType


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


# =============================================================================
# Lifecycle notifications
# =============================================================================


@dataclass(frozen=True, slots=True)
class LifecycleNotification:
    """
    Connection lifecycle notification from the gateway.

    Attributes:
        connection_id: Gateway-assigned connection id.
        event_type: CONNECT, DISCONNECT, MESSAGE or any other gateway value.
        route_key: Gateway route that produced the notification, if any.
    """

    connection_id: str
    event_type: str
    route_key: str | None = None

    @property
    def is_connect(self) -> bool:
        return self.event_type == GatewayEventType.CONNECT

    @property
    def is_disconnect(self) -> bool:
        return self.event_type == GatewayEventType.DISCONNECT

    @classmethod
    def from_request_context(cls, context: Mapping[str, Any]) -> "LifecycleNotification":
        return cls(
            connection_id=str(context.get("connectionId") or ""),
            event_type=str(context.get("eventType") or ""),
            route_key=context.get("routeKey"),
        )


# =============================================================================
# Stream records
# =============================================================================


@dataclass(frozen=True, slots=True)
class StreamRecord:
    """
    One inbound event, still encoded.

    Attributes:
        data: Payload as delivered by the stream.
        encoding: "base64" for managed-stream records, "utf-8" for Redis Stream entries.
        partition_key: Producer-assigned key, not interpreted.
        sequence_number: Position within the partition, not interpreted.
        arrived_at: Arrival timestamp (epoch seconds).
    """

    data: str | bytes | None
    encoding: str = "base64"
    partition_key: str | None = None
    sequence_number: str | None = None
    arrived_at: float = field(default_factory=time.time)

    @classmethod
    def from_kinesis(cls, record: Any) -> "StreamRecord":
        """Build from one ``Records[i]`` entry of a managed-stream batch."""
        body = record.get(FanoutConstants.STREAM_RECORD_KEY) if isinstance(record, Mapping) else None
        if not isinstance(body, Mapping):
            return cls(data=None)
        arrived = body.get("approximateArrivalTimestamp")
        return cls(
            data=body.get("data"),
            encoding="base64",
            partition_key=body.get("partitionKey"),
            sequence_number=body.get("sequenceNumber"),
            arrived_at=float(arrived) if isinstance(arrived, (int, float)) else time.time(),
        )

    def decode(self) -> Any:
        """
        Decode the payload into structured data.

        Raises:
            MalformedEvent: if the payload is missing, not valid base64,
                not UTF-8 or not strict JSON (NaN and Infinity are rejected).
        """
        if self.data is None or self.data == "" or self.data == b"":
            raise MalformedEvent("empty payload", self.sequence_number)

        raw = self.data
        try:
            if self.encoding == "base64":
                raw = base64.b64decode(raw, validate=True)
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return json.loads(raw, parse_constant=_reject_constant)
        except (binascii.Error, ValueError) as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueError
            raise MalformedEvent(
                f"{type(e).__name__}: {e}",
                self.sequence_number,
                partition_key=self.partition_key,
                preview=self.preview(),
            ) from e

    def preview(self) -> str:
        """Short printable excerpt of the raw payload for logs."""
        if self.data is None:
            return ""
        text = self.data if isinstance(self.data, str) else self.data.decode("utf-8", "replace")
        return text[: FanoutConstants.MALFORMED_PREVIEW_CHARS]


@dataclass(frozen=True, slots=True)
class StreamBatch:
    """Records delivered together in one invocation, in arrival order."""

    records: tuple[StreamRecord, ...]

    @classmethod
    def from_kinesis(cls, records: list[Any]) -> "StreamBatch":
        return cls(records=tuple(StreamRecord.from_kinesis(r) for r in records))

    def __len__(self) -> int:
        return len(self.records)


# =============================================================================
# Unrecognized
# =============================================================================


@dataclass(frozen=True, slots=True)
class UnrecognizedTrigger:
    """Trigger whose shape matches no known variant."""

    shape: str


Trigger = Union[LifecycleNotification, StreamBatch, UnrecognizedTrigger]


def _describe_shape(raw: Any) -> str:
    if isinstance(raw, Mapping):
        keys = sorted(str(k) for k in raw.keys())
        return f"mapping with keys {keys[:10]}"
    return type(raw).__name__


def classify_trigger(raw: Any) -> Trigger:
    """
    Resolve a raw invocation payload into its Trigger variant.

    - ``requestContext`` mapping → LifecycleNotification
    - ``Records`` list whose first entry carries a ``kinesis`` mapping → StreamBatch
    - anything else → UnrecognizedTrigger
    """
    if not isinstance(raw, Mapping):
        return UnrecognizedTrigger(shape=_describe_shape(raw))

    context = raw.get(FanoutConstants.LIFECYCLE_KEY)
    if isinstance(context, Mapping):
        return LifecycleNotification.from_request_context(context)

    records = raw.get(FanoutConstants.RECORDS_KEY)
    if (
        isinstance(records, list)
        and records
        and isinstance(records[0], Mapping)
        and isinstance(records[0].get(FanoutConstants.STREAM_RECORD_KEY), Mapping)
    ):
        return StreamBatch.from_kinesis(records)

    return UnrecognizedTrigger(shape=_describe_shape(raw))


# =============================================================================
# Payload numbers
# =============================================================================

# JavaScript prints integral numbers below this magnitude without a fraction
_JS_EXPONENT_THRESHOLD = 1e21


def normalize_numbers(value: Any) -> Any:
    """
    Turn integral floats (``1.0``, ``1e5``) into ints, recursively.

    Decoded JSON keeps ``1.0`` as a float and Python would print it back as
    ``1.0``, where a JavaScript viewer prints ``1``. Larger magnitudes keep
    their float form since both languages use exponent notation there.
    """
    if isinstance(value, float):
        if value.is_integer() and abs(value) < _JS_EXPONENT_THRESHOLD:
            return int(value)
        return value
    if isinstance(value, dict):
        return {key: normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_numbers(item) for item in value]
    return value

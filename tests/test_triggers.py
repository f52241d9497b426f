"""
Tests for trigger classification and record decoding.
"""

import base64

import pytest

from shared.utils.exceptions import MalformedEvent
from ws_fanout.components.events.types import (
    LifecycleNotification,
    StreamBatch,
    StreamRecord,
    UnrecognizedTrigger,
    classify_trigger,
)
from tests.conftest import connect_event, kinesis_event, kinesis_record


class TestClassifyTrigger:
    """Tests for structural classification."""

    def test_lifecycle_notification(self):
        trigger = classify_trigger(connect_event("abc"))

        assert trigger == LifecycleNotification("abc", "CONNECT", "$connect")
        assert trigger.is_connect
        assert not trigger.is_disconnect

    def test_stream_batch(self):
        trigger = classify_trigger(kinesis_event(
            kinesis_record({"n": 1}, sequence_number="1"),
            kinesis_record({"n": 2}, sequence_number="2"),
        ))

        assert isinstance(trigger, StreamBatch)
        assert len(trigger) == 2
        assert [r.sequence_number for r in trigger.records] == ["1", "2"]
        assert trigger.records[0].partition_key == "call-123"
        assert trigger.records[0].arrived_at == 1700000000.0

    def test_request_context_wins_over_records(self):
        raw = {**connect_event("abc"), **kinesis_event(kinesis_record({"n": 1}))}
        assert isinstance(classify_trigger(raw), LifecycleNotification)

    def test_payload_contents_are_not_inspected(self):
        """A record whose data looks like a lifecycle event is still a stream record."""
        trigger = classify_trigger(kinesis_event(kinesis_record(connect_event("abc"))))
        assert isinstance(trigger, StreamBatch)

    @pytest.mark.parametrize("raw", [
        None,
        "CONNECT",
        42,
        [],
        {},
        {"Records": []},
        {"Records": "nope"},
        {"Records": [{"s3": {}}]},
        {"Records": [{"kinesis": "not a mapping"}]},
        {"requestContext": "not a mapping"},
        {"httpMethod": "GET", "path": "/"},
    ])
    def test_unrecognized(self, raw):
        assert isinstance(classify_trigger(raw), UnrecognizedTrigger)

    def test_unrecognized_describes_shape(self):
        trigger = classify_trigger({"b": 1, "a": 2})
        assert trigger.shape == "mapping with keys ['a', 'b']"

    def test_missing_context_fields(self):
        trigger = classify_trigger({"requestContext": {}})
        assert trigger == LifecycleNotification("", "", None)

    def test_later_records_without_body_become_empty(self):
        trigger = classify_trigger({"Records": [kinesis_record({"n": 1}), {"other": 1}]})
        assert isinstance(trigger, StreamBatch)
        assert trigger.records[1].data is None


class TestStreamRecordDecode:
    """Tests for payload decoding."""

    def test_base64_json(self):
        record = StreamRecord(data=base64.b64encode(b'{"a": [1, 2]}').decode())
        assert record.decode() == {"a": [1, 2]}

    def test_utf8_json(self):
        record = StreamRecord(data='{"name": "Mañana"}', encoding="utf-8")
        assert record.decode() == {"name": "Mañana"}

    def test_scalar_payload(self):
        record = StreamRecord(data="42", encoding="utf-8")
        assert record.decode() == 42

    @pytest.mark.parametrize("data", [None, "", b""])
    def test_empty_payload(self, data):
        with pytest.raises(MalformedEvent):
            StreamRecord(data=data).decode()

    def test_invalid_base64(self):
        with pytest.raises(MalformedEvent) as exc_info:
            StreamRecord(data="***", sequence_number="7").decode()
        assert exc_info.value.sequence_number == "7"

    def test_invalid_utf8(self):
        data = base64.b64encode(b"\xff\xfe\xfd").decode()
        with pytest.raises(MalformedEvent):
            StreamRecord(data=data).decode()

    def test_invalid_json(self):
        data = base64.b64encode(b"{not json").decode()
        with pytest.raises(MalformedEvent) as exc_info:
            StreamRecord(data=data, partition_key="pk").decode()
        assert exc_info.value.log_context["partition_key"] == "pk"

    @pytest.mark.parametrize("text", [
        b'{"x": NaN}',
        b'{"x": Infinity}',
        b'[1, -Infinity]',
    ])
    def test_non_standard_constants_rejected(self, text):
        """NaN and Infinity are not JSON and cannot be re-encoded for viewers."""
        data = base64.b64encode(text).decode()
        with pytest.raises(MalformedEvent) as exc_info:
            StreamRecord(data=data, sequence_number="9").decode()
        assert exc_info.value.sequence_number == "9"

    def test_preview_is_truncated(self):
        record = StreamRecord(data="x" * 500, encoding="utf-8")
        assert len(record.preview()) == 120

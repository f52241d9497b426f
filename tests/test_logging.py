"""
Tests for structured logging and invocation correlation.
"""

import json
import logging

from shared.config.logging import (
    DevelopmentFormatter,
    StructuredFormatter,
    get_logger,
    mask_connection_id,
)
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    get_request_id,
    invocation_scope,
)


def make_record(logger_name="ws_fanout.core.dispatcher", **context) -> logging.LogRecord:
    record = logging.LogRecord(logger_name, logging.WARNING, __file__, 10, "Push failed", (), None)
    record.extra_data = context or None
    return record


class TestStructuredLogger:

    def test_keywords_become_context(self, caplog):
        logger = get_logger("ws_fanout.tests")

        with caplog.at_level(logging.INFO):
            logger.info("Connection registered", connection_id="abc")

        record = caplog.records[-1]
        assert record.getMessage() == "Connection registered"
        assert record.extra_data == {"connection_id": "abc"}

    def test_exc_info_is_not_context(self, caplog):
        logger = get_logger("ws_fanout.tests")

        with caplog.at_level(logging.ERROR):
            try:
                raise ValueError("boom")
            except ValueError:
                logger.error("Failed", exc_info=True, stream="s")

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert record.extra_data == {"stream": "s"}

    def test_record_points_at_caller(self, caplog):
        logger = get_logger("ws_fanout.tests")

        with caplog.at_level(logging.INFO):
            logger.info("here")

        assert caplog.records[-1].funcName == "test_record_points_at_caller"


class TestFormatters:

    def test_json_formatter(self):
        record = make_record(connection_id="abc")
        record.request_id = "inv-1"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["msg"] == "Push failed"
        assert entry["service"] == "ws-fanout"
        assert entry["ctx"] == {"connection_id": "abc"}
        assert entry["invocation_id"] == "inv-1"

    def test_json_formatter_without_context(self):
        record = make_record()
        record.request_id = "-"

        entry = json.loads(StructuredFormatter().format(record))

        assert "ctx" not in entry
        assert "invocation_id" not in entry

    def test_development_formatter(self):
        record = make_record(reason="HTTP 500")
        record.request_id = "0123456789abcdef"

        line = DevelopmentFormatter().format(record)

        assert "core.dispatcher: Push failed" in line
        assert "reason=HTTP 500" in line
        assert "01234567" in line
        assert "89abcdef" not in line


class TestCorrelation:

    def test_invocation_scope_binds_and_resets(self):
        assert get_request_id() == ""
        with invocation_scope() as invocation_id:
            assert get_request_id() == invocation_id
            assert len(invocation_id) == 32
        assert get_request_id() == ""

    def test_nested_scope_reuses_outer_id(self):
        with invocation_scope("outer"):
            with invocation_scope() as inner:
                assert inner == "outer"

    def test_filter_adds_request_id(self):
        record = make_record()
        with invocation_scope("inv-9"):
            CorrelationIdFilter().filter(record)
        assert record.request_id == "inv-9"

        CorrelationIdFilter().filter(record)
        assert record.request_id == "-"


def test_mask_connection_id():
    assert mask_connection_id("abcdefghijkl") == "abcdefgh..."
    assert mask_connection_id("short") == "short"
    assert mask_connection_id(None) == "<no-connection>"

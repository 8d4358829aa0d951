"""Tests for logging utility functions."""

import logging
from unittest.mock import MagicMock

import pytest

from core.errors.exceptions import DomainError
from core.logging.utilities import (
    _RESERVED_LOG_KEYS,
    StructuredLogger,
    log_exception,
)


class TestLogException:

    def test_domain_error_fields(self):
        logger = MagicMock()
        error = DomainError.rate_limited(
            "Airtable rate limit exceeded",
            status=429,
            retry_after_ms=2000,
            context={"upstream_request_id": "req1", "upstream_error_type": "RATE_LIMIT"},
        )
        log_exception(logger, error, "query failed")

        args, kwargs = logger.log.call_args
        assert args == (logging.ERROR, "query failed")
        assert kwargs["exc_info"] is error
        extra = kwargs["extra"]
        assert extra["error_kind"] == "RateLimited"
        assert extra["http_status"] == 429
        assert extra["retry_after_ms"] == 2000
        assert extra["upstream_request_id"] == "req1"
        assert extra["upstream_error_type"] == "RATE_LIMIT"
        assert extra["error_message"] == "Airtable rate limit exceeded"

    def test_plain_exception_without_traceback(self):
        logger = MagicMock()
        log_exception(logger, ValueError("x" * 600), "failed", level=logging.WARNING, include_traceback=False)

        args, kwargs = logger.log.call_args
        assert args[0] == logging.WARNING
        assert "exc_info" not in kwargs
        assert kwargs["extra"]["error_message"].endswith("...")
        assert len(kwargs["extra"]["error_message"]) == 503

    def test_drops_reserved_keys(self):
        logger = MagicMock()
        log_exception(logger, ValueError("x"), "failed", name="bad", base_id="app1")

        extra = logger.log.call_args.kwargs["extra"]
        assert extra["base_id"] == "app1"
        assert "name" not in extra
        assert "name" in _RESERVED_LOG_KEYS

    def test_adapter_context_is_merged(self, caplog):
        log = StructuredLogger(logging.getLogger("test.structured"), {"pat_hash": "abc", "operation": "x"})
        error = DomainError.not_found("gone", status=404, context={"upstream_request_id": "req9"})
        with caplog.at_level(logging.ERROR, logger="test.structured"):
            log_exception(log, error, "describe failed", include_traceback=False, operation="describe")

        record = caplog.records[-1]
        assert record.getMessage() == "describe failed"
        assert record.pat_hash == "abc"
        assert record.operation == "describe"
        assert record.error_kind == "NotFound"
        assert record.http_status == 404
        assert record.upstream_request_id == "req9"
        assert record.exc_info is None


class TestStructuredLogger:

    def test_child_merges_context(self):
        base = StructuredLogger(logging.getLogger("test.structured"), {"pat_hash": "abc"})
        child = base.child(base_id="app1", table=None)

        assert child.context == {"pat_hash": "abc", "base_id": "app1"}
        assert base.context == {"pat_hash": "abc"}

    def test_child_overrides_parent_keys(self):
        base = StructuredLogger(logging.getLogger("test.structured"), {"component": "a"})
        assert base.child(component="b").context == {"component": "b"}

    @pytest.mark.parametrize(
        "method,level",
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("warn", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_leveled_calls_attach_metadata(self, caplog, method, level):
        log = StructuredLogger(logging.getLogger("test.structured"), {"component": "client"})
        with caplog.at_level(logging.DEBUG, logger="test.structured"):
            getattr(log, method)("something happened", http_status=503)

        record = caplog.records[-1]
        assert record.levelno == level
        assert record.getMessage() == "something happened"
        assert record.component == "client"
        assert record.http_status == 503

    def test_reports_caller_location(self, caplog):
        log = StructuredLogger(logging.getLogger("test.structured"))
        with caplog.at_level(logging.INFO, logger="test.structured"):
            log.info("where am I")
        assert caplog.records[-1].filename == "test_utilities.py"

    def test_skips_disabled_levels(self, caplog):
        log = StructuredLogger(logging.getLogger("test.structured"))
        with caplog.at_level(logging.WARNING, logger="test.structured"):
            log.debug("hidden")
        assert not caplog.records

    def test_exc_info_is_forwarded(self, caplog):
        log = StructuredLogger(logging.getLogger("test.structured"))
        error = RuntimeError("boom")
        with caplog.at_level(logging.ERROR, logger="test.structured"):
            log.error("failed", exc_info=error)
        assert caplog.records[-1].exc_info[1] is error

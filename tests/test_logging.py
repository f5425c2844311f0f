"""
Tests for structured logging helpers.
"""
import json
import logging
from unittest.mock import patch

import pytest

from crosspost.logging_config import JsonFormatter, get_logger, timed


class TestStructuredLogger:

    def test_bind_repeats_context(self):
        log = get_logger("tests").bind(draft_id=7)
        with patch.object(log.logger, "log") as emit:
            log.info("Draft submitted", job_ref="job-1")

        level, message = emit.call_args[0]
        assert level == logging.INFO
        assert message == "Draft submitted"
        assert emit.call_args[1]["extra"]["context"] == {"draft_id": 7, "job_ref": "job-1"}

    def test_bind_does_not_leak_into_parent(self):
        parent = get_logger("tests")
        parent.bind(draft_id=7)
        assert parent.context == {}

    def test_get_logger_is_shared(self):
        assert get_logger("tests") is get_logger("tests")

    def test_json_formatter_flattens_context(self):
        record = logging.LogRecord("crosspost.tests", logging.WARNING, __file__, 1, "Poll failed", None, None)
        record.context = {"draft_id": 3}
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["message"] == "Poll failed"
        assert entry["draft_id"] == 3


class TestTimed:

    def test_failure_is_logged_and_reraised(self):
        log = get_logger("tests")

        @timed(log)
        def explode():
            raise RuntimeError("boom")

        with patch.object(log, "warning") as warning:
            with pytest.raises(RuntimeError):
                explode()
        assert warning.call_args[1]["error_type"] == "RuntimeError"

    def test_success_returns_result(self):
        log = get_logger("tests")

        @timed(log)
        def add(a, b):
            return a + b

        with patch.object(log, "debug") as debug:
            assert add(1, 2) == 3
        assert "duration_ms" in debug.call_args[1]


class TestErrorLogging:

    def test_error_carries_traceback_of_given_exception(self):
        log = get_logger("tests")
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            caught = e

        with patch.object(log.logger, "log") as emit:
            log.error("Draft submission failed", error=caught, draft_id=4)

        context = emit.call_args[1]["extra"]["context"]
        assert context["error_type"] == "ValueError"
        assert context["error_message"] == "bad payload"
        assert "ValueError: bad payload" in context["traceback"]
        assert context["draft_id"] == 4

    def test_error_without_exception_has_no_traceback(self):
        log = get_logger("tests")
        with patch.object(log.logger, "log") as emit:
            log.error("Poll gave up")
        assert "traceback" not in emit.call_args[1]["extra"]["context"]

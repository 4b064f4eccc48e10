"""
Unit tests for logger.py - Formatters, request correlation and call timing.
"""

import json
import logging
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logger import (
    ConsoleFormatter, JsonLineFormatter, bind_request_id, get_logger, log_function_call, release_request_id
)
from tests.test_logger import test_logger


class CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    log = get_logger("tests.logging")
    handler = CaptureHandler()
    log.logger.addHandler(handler)
    previous = log.logger.level
    log.logger.setLevel(logging.DEBUG)
    yield log, handler.records
    log.logger.removeHandler(handler)
    log.logger.setLevel(previous)


class TestBookLogger:

    def setup_method(self):
        test_logger.log_section("TESTING: logger.py - BookLogger")

    def test_fields_and_request_id(self, captured):
        test_logger.log_test_start("logger.py", "BookLogger.info", "fields")

        try:
            log, records = captured
            token = bind_request_id("req-42")
            try:
                log.structure_change("move", "chapter", "c1", documents=3)
            finally:
                release_request_id(token)
            log.info("after request")

            first, second = records
            assert first.getMessage() == "move chapter c1"
            assert first.fields == {"documents": 3}
            assert first.request_id == "req-42"
            assert second.request_id is None

            test_logger.log_test_pass("logger.py", "BookLogger.info", "fields")
        except Exception as e:
            test_logger.log_test_fail("logger.py", "BookLogger.info", "fields", str(e))
            raise

    def test_loggers_share_root_handlers(self):
        assert get_logger("tests.logging") is get_logger("tests.logging")
        assert get_logger("tests.logging").logger.name == "book_builder.tests.logging"
        assert logging.getLogger("book_builder").handlers

    def test_field_names_do_not_clash_with_parameters(self, captured):
        log, records = captured
        log.debug("skipped", level="chapter", message="kept")
        log.error("failed", level="part", exc_info=False)

        assert records[0].getMessage() == "skipped"
        assert records[0].fields == {"level": "chapter", "message": "kept"}
        assert records[1].levelno == logging.ERROR
        assert records[1].fields == {"level": "part"}

    def test_server_errors_log_as_warning(self, captured):
        log, records = captured
        log.request("GET", "/books", 502, 12.5)
        assert records[0].levelno == logging.WARNING
        assert records[0].fields["duration_ms"] == 12.5


class TestFormatters:

    def _record(self, **fields):
        record = logging.LogRecord("book_builder.app", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.fields = fields
        record.request_id = "abc"
        return record

    def test_json_line(self):
        entry = json.loads(JsonLineFormatter().format(self._record(level="part")))
        assert entry["message"] == "hello world"
        assert entry["fields"] == {"level": "part", "request_id": "abc"}
        assert entry["level"] == "INFO"

    def test_console_without_color(self):
        line = ConsoleFormatter(use_color=False).format(self._record(entity_id="p1"))
        assert "INFO" in line
        assert line.endswith("hello world | entity_id=p1 request_id=abc")
        assert "\033[" not in line


class TestLogFunctionCall:

    def test_failures_are_logged_and_reraised(self, captured):
        log, records = captured

        @log_function_call(log)
        def explode():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            explode()
        assert records[-1].levelno == logging.ERROR
        assert records[-1].fields["error_type"] == "KeyError"

    def test_success_returns_result(self, captured):
        log, records = captured

        @log_function_call(log)
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert "duration_ms" in records[-1].fields

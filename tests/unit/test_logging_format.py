"""Tests for unified logging format.

Target format: 2026-01-06T14:05:52Z [source] LEVEL message
"""

from __future__ import annotations

import io
import logging
import re
import sys

import pytest

from camp_planner.logging_config import TRACE, ISO8601Formatter, NoisyAccessFilter, configure_logging, resolve_level


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(name="test", level=level, pathname="", lineno=0, msg=msg, args=(), exc_info=None)


class TestISO8601Formatter:
    """Test the custom ISO8601 formatter produces correct output."""

    def test_format_matches_target(self):
        output = ISO8601Formatter(source="api").format(_record("Test message"))

        pattern = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z \[api\] INFO Test message$"
        assert re.match(pattern, output), f"Output '{output}' doesn't match expected format"

    def test_exception_text_is_appended(self):
        formatter = ISO8601Formatter(source="api")
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("test", logging.ERROR, "", 0, "failed", (), exc_info=sys.exc_info())

        output = formatter.format(record)

        assert "ERROR failed" in output
        assert "ValueError: boom" in output

    def test_trace_level_name(self):
        output = ISO8601Formatter(source="store").format(_record("payload", level=TRACE))
        assert "[store] TRACE payload" in output


class TestNoisyAccessFilter:
    @pytest.mark.parametrize(
        "message",
        [
            '127.0.0.1:5000 - "GET /health HTTP/1.1" 200',
            '127.0.0.1:5000 - "GET /api/schedules/ABC123/events HTTP/1.1" 200',
        ],
    )
    def test_suppresses_noisy_get_lines(self, message):
        assert NoisyAccessFilter().filter(_record(message)) is False

    def test_keeps_other_requests(self):
        assert NoisyAccessFilter().filter(_record('"PUT /api/schedules/ABC123/camps HTTP/1.1" 200')) is True

    def test_keeps_everything_at_debug(self):
        assert NoisyAccessFilter().filter(_record('"GET /health HTTP/1.1" 200', level=logging.DEBUG)) is True

    def test_uses_uvicorn_access_args(self):
        record = logging.LogRecord(
            name="uvicorn.access",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg='%s - "%s %s HTTP/%s" %d',
            args=("127.0.0.1:5000", "GET", "/api/schedules/ABC123/events", "1.1", 200),
            exc_info=None,
        )
        assert NoisyAccessFilter().filter(record) is False

        record.args = ("127.0.0.1:5000", "DELETE", "/api/schedules/ABC123/events", "1.1", 204)
        assert NoisyAccessFilter().filter(record) is True


class TestConfigureLogging:
    def test_log_level_env_selects_trace(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "TRACE")
        root = configure_logging(source="test")
        assert root.level == TRACE

    def test_uvicorn_loggers_share_root_handler(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        root = configure_logging(source="api")

        access = logging.getLogger("uvicorn.access")
        assert access.handlers == root.handlers
        assert access.propagate is False

    def test_output_goes_through_formatter(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        root = configure_logging(source="api")
        stream = io.StringIO()
        root.handlers[0].setStream(stream)  # type: ignore[attr-defined]

        logging.getLogger("camp_planner.test").info("hello")

        assert re.search(r"Z \[api\] INFO hello$", stream.getvalue().strip())


class TestResolveLevel:
    @pytest.mark.parametrize(
        "env,debug,expected",
        [
            ("", None, logging.INFO),
            ("trace", None, TRACE),
            ("DEBUG", None, logging.DEBUG),
            ("WARNING", None, logging.WARNING),
            ("", True, logging.DEBUG),
            ("TRACE", True, TRACE),
            ("verbose", None, logging.INFO),
        ],
    )
    def test_resolve_level(self, monkeypatch, env, debug, expected):
        monkeypatch.setenv("LOG_LEVEL", env)
        assert resolve_level(debug) == expected

"""Tests for structured logging."""

import json
import logging

from mcq_service.logging_config import JSONFormatter, request_id_context


def _record(level=logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="mcq_service.fallback",
        level=level,
        pathname="fallback.py",
        lineno=42,
        msg="Generating with model %s",
        args=("gemini-flash-latest",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "mcq_service.fallback"
        assert entry["message"] == "Generating with model gemini-flash-latest"
        assert "timestamp" in entry
        assert "source" not in entry

    def test_structured_extras(self):
        entry = json.loads(
            JSONFormatter().format(_record(model="gemini-flash-latest", attempt=2, delay_ms=4000))
        )

        assert entry["model"] == "gemini-flash-latest"
        assert entry["attempt"] == 2
        assert entry["delay_ms"] == 4000

    def test_request_id_included(self):
        token = request_id_context.set("req-42")
        try:
            entry = json.loads(JSONFormatter().format(_record()))
        finally:
            request_id_context.reset(token)

        assert entry["request_id"] == "req-42"

    def test_errors_include_source(self):
        entry = json.loads(JSONFormatter().format(_record(level=logging.ERROR)))
        assert entry["source"] == "fallback.py:42"

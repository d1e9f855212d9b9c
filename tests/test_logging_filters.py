"""Tests for sensitive data filtering and JSON log formatting."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    redact,
    set_request_id,
)


@pytest.fixture
def log_stream():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_database_password(log_stream):
    logger, stream = log_stream

    logger.info(
        "app.startup",
        extra={"db_password": "testpass", "db_host": "localhost", "pool_capacity": 10},
    )

    payload = json.loads(stream.getvalue())
    assert payload["db_password"] == "[REDACTED]"
    assert payload["db_host"] == "localhost"
    assert payload["pool_capacity"] == 10
    assert "testpass" not in stream.getvalue()


def test_redacts_nested_values(log_stream):
    logger, stream = log_stream

    logger.info(
        "db.connect",
        extra={"params": {"user": "testuser", "password": "s3cret", "port": 3308}},
    )

    output = stream.getvalue()
    assert "s3cret" not in output
    payload = json.loads(output)
    assert payload["params"]["password"] == "[REDACTED]"
    assert payload["params"]["user"] == "testuser"


def test_safe_fields_pass_through(log_stream):
    logger, stream = log_stream

    logger.info(
        "http.access",
        extra={"method": "GET", "path": "/pool2", "status": 200, "duration_ms": 3.5},
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "http.access"
    assert payload["level"] == "info"
    assert payload["path"] == "/pool2"
    assert payload["status"] == 200
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_is_attached_from_context(log_stream):
    logger, stream = log_stream
    set_request_id("req-123")

    logger.warning("pool.exhausted", extra={"capacity": 5})

    payload = json.loads(stream.getvalue())
    assert payload["request_id"] == "req-123"
    assert payload["capacity"] == 5


def test_exception_info_is_rendered(log_stream):
    logger, stream = log_stream

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("unhandled")

    payload = json.loads(stream.getvalue())
    assert "RuntimeError: boom" in payload["exc_info"]


def test_redact_handles_lists_and_case():
    value = [{"Password": "x", "name": "a"}, ("keep",)]

    assert redact(value) == [{"Password": "[REDACTED]", "name": "a"}, ("keep",)]

"""Tests for structured logging helpers."""

import io
import json
import logging

import pytest
from readlog.core.logger import (
    MAX_REQUEST_ID_LENGTH,
    REQUEST_ID_HEADER,
    JSONFormatter,
    configure_logging,
    ensure_request_id,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("readlog.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    payload = json.loads(
        JSONFormatter().format(_record(request_id="rid-1", event="auth.login.succeeded", user_id="u1"))
    )
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["service"] == "readlog-auth"
    assert payload["request_id"] == "rid-1"
    assert payload["event"] == "auth.login.succeeded"
    assert payload["user_id"] == "u1"


def test_secret_bearing_extras_are_never_emitted():
    formatter = JSONFormatter(extra_keys=("event", "refresh_token", "password"))
    payload = json.loads(formatter.format(_record(event="e", refresh_token="abc", password="hunter2")))
    assert payload["event"] == "e"
    assert "refresh_token" not in payload
    assert "password" not in payload


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_writes_json_lines(restore_root_logger):
    stream = io.StringIO()
    configure_logging("warning", stream=stream)

    logging.getLogger("readlog.test").info("dropped")
    logging.getLogger("readlog.test").warning("kept", extra={"event": "x.y"})

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["event"] == "x.y"
    assert json.loads(lines[0])["request_id"] is None


def test_request_id_is_propagated(client):
    response = client.get("/api/v1/health", headers={REQUEST_ID_HEADER: "req-123"})
    assert response.headers[REQUEST_ID_HEADER] == "req-123"


def test_correlation_header_is_accepted_and_clipped(client):
    response = client.get("/api/v1/health", headers={"X-Correlation-ID": "c" * 500})
    assert response.headers[REQUEST_ID_HEADER] == "c" * MAX_REQUEST_ID_LENGTH


def test_request_id_is_generated_per_request(client):
    first = client.get("/api/v1/health").headers[REQUEST_ID_HEADER]
    second = client.get("/api/v1/health").headers[REQUEST_ID_HEADER]
    assert first and second and first != second


def test_request_id_outside_request_context():
    assert ensure_request_id() != ensure_request_id()

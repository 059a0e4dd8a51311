"""Structured JSON logging with request correlation.

The root logger gets a single stdout handler writing one JSON object per
line. Records emitted during a request carry its correlation id, which is
taken from ``X-Request-ID`` / ``X-Correlation-ID`` or generated, and echoed
back on the response.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

SERVICE_NAME = "readlog-auth"
REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")
# Client-supplied ids are clipped to this length
MAX_REQUEST_ID_LENGTH = 128

# ``extra=`` keys copied into the JSON payload when present
EXTRA_KEYS = ("event", "user_id", "count", "error_kind", "endpoint", "elapsed_ms")
# Never emitted, whatever the caller passes
REDACTED_KEYS = frozenset({"password", "password_hash", "token", "access_token", "refresh_token"})


class JSONFormatter(logging.Formatter):
    """
    Render log records as JSON objects.

    Parameters
    ----------
    service:
        Value of the ``service`` field on every line.
    extra_keys:
        Record attributes (set through ``extra=``) copied into the payload.
        Secret-bearing names in :data:`REDACTED_KEYS` are dropped.
    """

    def __init__(self, *, service: str = SERVICE_NAME, extra_keys: tuple[str, ...] = EXTRA_KEYS) -> None:
        super().__init__()
        self.service = service
        self.extra_keys = tuple(k for k in extra_keys if k not in REDACTED_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "service": self.service,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({k: getattr(record, k) for k in self.extra_keys if hasattr(record, k)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp records with the active request's correlation id (``None`` outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the current request identifier, generating one when necessary.

    Outside a request every call returns a fresh id.
    """
    if not has_request_context():
        return str(uuid4())
    if "request_id" not in g:
        supplied = next(
            (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None
        )
        g.request_id = supplied.strip()[:MAX_REQUEST_ID_LENGTH] if supplied else str(uuid4())
    return g.request_id  # type: ignore[no-any-return]


def configure_logging(level: str | int = "INFO", *, stream: IO[str] | None = None) -> None:
    """Install the JSON handler on the root logger, replacing existing handlers."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Seed a correlation id per request and echo it on the response."""
    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        # ``g`` outlives the request when an app context was already pushed
        g.pop("request_id", None)
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["JSONFormatter", "configure_logging", "ensure_request_id", "init_app"]

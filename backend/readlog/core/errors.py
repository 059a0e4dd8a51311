"""Centralized JSON (RFC 7807) error handling for the API.

Every failure leaving the app is an ``application/problem+json`` body with
``status``, ``code``, ``detail`` and the request's correlation id. Expected
authentication failures arrive as :class:`APIError`; infrastructure errors
are mapped by type without leaking driver messages.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import InvalidTokenError
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from readlog.core.extensions import jwt as jwt_manager
from readlog.core.logger import ensure_request_id

log = logging.getLogger(__name__)

# Stable machine codes for plain HTTP errors
_HTTP_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    422: "unprocessable_entity",
    500: "internal_server_error",
    503: "service_unavailable",
}

# exception type -> (status, code, client-safe detail); tracebacks are logged
_OPAQUE_ERRORS: tuple[tuple[type[Exception], HTTPStatus, str, str], ...] = (
    (IntegrityError, HTTPStatus.CONFLICT, "conflict", "Resource conflict"),
    (OperationalError, HTTPStatus.SERVICE_UNAVAILABLE, "service_unavailable", "Service temporarily unavailable"),
    (Exception, HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error"),
)


def problem(
    status: int,
    code: str,
    detail: str,
    *,
    title: str | None = None,
    details: dict[str, Any] | None = None,
) -> tuple[Response, int]:
    """
    Build an RFC 7807 response.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param detail: Human-readable explanation (safe for clients).
    :param title: Optional title; defaults to the HTTP reason phrase.
    :param details: Optional structured payload, e.g. ``{"errors": [...]}``.
    :returns: Response with ``application/problem+json`` media type, and status.
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": title or HTTPStatus(status).phrase,
        "status": int(status),
        "detail": detail,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    resp = jsonify(body)
    resp.mimetype = "application/problem+json"
    return resp, int(status)


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Subclasses pin ``status_code`` and ``code``; any of them can still be
    overridden per instance.

    Parameters
    ----------
    message : str | None
        Human-readable description presented to clients.
    status_code : int | None
        HTTP status code to return.
    code : str | None
        Machine-readable identifier, typically snake_case.
    title : str | None
        Short problem title (e.g. ``"Login failed"``).
    details : dict[str, Any] | None
        Optional structured payload included in the body.
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    code: str = "bad_request"
    default_message = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        title: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = int(status_code)
        if code is not None:
            self.code = code
        self.title = title
        self.details = details or {}

    def to_response(self) -> tuple[Response, int]:
        return problem(
            self.status_code, self.code, self.message, title=self.title, details=self.details
        )


class BadRequest(APIError):
    """400 for malformed or policy-violating input."""


class Unauthorized(APIError):
    """401 when authentication fails."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


def _token_problem(reason: str) -> tuple[Response, int]:
    log.warning("Bearer token rejected: %s", reason, extra={"event": "auth.bearer.rejected"})
    return problem(HTTPStatus.UNAUTHORIZED, "unauthorized", "Missing or invalid access token")


def _register_opaque(app: Flask, exc_type: type[Exception], status: HTTPStatus, code: str, detail: str) -> None:
    def handler(err: Exception):
        log.error("%s on %s", type(err).__name__, request.path, exc_info=err)
        return problem(status, code, detail)

    app.register_error_handler(exc_type, handler)


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - 4xx are logged as warnings, 5xx and opaque errors with traceback.
    - Flask-JWT-Extended installs its own per-exception handlers; its loader
      callbacks are pointed at the same problem body so every bearer failure
      is a 401.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        level = log.error if err.status_code >= 500 else log.warning
        level("APIError: code=%s status=%s msg=%s", err.code, err.status_code, err.message)
        return err.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = _HTTP_CODES.get(status, "error")
        if status == HTTPStatus.NOT_FOUND:
            detail = f"Route '{request.path}' not found"
        else:
            detail = (err.description or code.replace("_", " ").capitalize()).strip()
        log.warning("HTTPException: code=%s status=%s", code, status)
        return problem(status, code, detail)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        log.warning("Request body rejected by schema")
        return problem(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            details={"errors": err.messages},
        )

    jwt_manager.unauthorized_loader(_token_problem)
    jwt_manager.invalid_token_loader(_token_problem)
    jwt_manager.expired_token_loader(lambda _header, _payload: _token_problem("expired"))

    @app.errorhandler(JWTExtendedException)
    @app.errorhandler(InvalidTokenError)
    def handle_jwt_error(err: Exception):
        return _token_problem(type(err).__name__)

    for exc_type, status, code, detail in _OPAQUE_ERRORS:
        _register_opaque(app, exc_type, status, code, detail)

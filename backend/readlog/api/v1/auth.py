"""Authentication endpoints delegating to :class:`AuthService`."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, request

from readlog.api.deps import current_user_id, json_response, require_auth, timing
from readlog.core.errors import APIError, BadRequest, Unauthorized
from readlog.schemas import (
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    SessionSchema,
    TokenResponseSchema,
    WhoAmISchema,
)
from readlog.services.auth.dto import AuthResult, ErrorKind, LoginIn, RefreshIn, RegisterIn, RevokeIn
from readlog.services.auth.wiring import get_auth_service

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
token_schema = TokenResponseSchema()
session_schema = SessionSchema(many=True)
whoami_schema = WhoAmISchema()

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.CONFLICT: HTTPStatus.CONFLICT,
    ErrorKind.UNAUTHORIZED: HTTPStatus.UNAUTHORIZED,
}


def _session_response(result: AuthResult, *, title: str) -> Response:
    """Render a successful result, or raise the problem matching its error kind."""
    if not result.succeeded:
        status = _STATUS_BY_KIND.get(result.error_kind, HTTPStatus.BAD_REQUEST)
        kind = result.error_kind.value if result.error_kind else "bad_request"
        raise APIError(
            ", ".join(result.errors),
            status_code=status,
            code=kind,
            title=title,
            details={"errors": list(result.errors)},
        )
    body = token_schema.dump(
        {
            "access_token": result.access_token,
            "refresh_token": result.refresh_token,
            "expires_at": result.access_token_expires_at,
        }
    )
    return json_response(body)


@bp.post("/register")
@timing
def register():
    """Create an account and return its first token pair."""
    data = register_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().register(RegisterIn(**data))
    return _session_response(result, title="Registration failed")


@bp.post("/login")
@timing
def login():
    """Authenticate by email or username and return a token pair."""
    data = login_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().login(LoginIn(**data))
    return _session_response(result, title="Login failed")


@bp.post("/refresh")
@timing
def refresh():
    """Rotate a refresh token."""
    data = refresh_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().refresh_token(RefreshIn(**data))
    return _session_response(result, title="Token refresh failed")


@bp.post("/revoke")
@require_auth
@timing
def revoke():
    """Revoke one refresh token (logout)."""
    data = refresh_schema.load(request.get_json(silent=True) or {})
    if not get_auth_service().revoke_token(RevokeIn(**data)):
        raise BadRequest("Invalid or already revoked token", title="Token revocation failed")
    return Response(status=HTTPStatus.NO_CONTENT)


@bp.post("/revoke-all")
@require_auth
@timing
def revoke_all():
    """Revoke every refresh token of the authenticated user."""
    count = get_auth_service().revoke_all_sessions(current_user_id())
    return json_response({"revoked": count})


@bp.get("/sessions")
@require_auth
@timing
def sessions():
    """List the authenticated user's active sessions, newest first."""
    views = get_auth_service().list_active_sessions(current_user_id())
    return json_response({"data": session_schema.dump(views)})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user's identity."""
    service = get_auth_service()
    user = service.whoami(current_user_id())
    if user is None:
        raise Unauthorized("User not found")
    body = whoami_schema.dump(
        {
            "id": user.id,
            "email": user.email,
            "username": user.username,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "roles": service.credentials.get_roles(user),
        }
    )
    return json_response(body)

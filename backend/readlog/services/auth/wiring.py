"""Build the authentication collaborators once per application."""

from __future__ import annotations

from flask import Flask, current_app

from readlog.core.extensions import get_redis
from readlog.infra.jwt.pyjwt_access_token_issuer import PyJWTAccessTokenIssuer
from readlog.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from readlog.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher
from readlog.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from readlog.services._shared.policies import PasswordPolicy
from readlog.services._shared.ports import RefreshTokenStore
from readlog.services.auth.dto import AuthSettings
from readlog.services.auth.service import AuthService
from readlog.services.identity.service import IdentityService

AUTH_SERVICE_KEY = "readlog.auth_service"
IDENTITY_SERVICE_KEY = "readlog.identity_service"


def build_refresh_store(backend: str) -> RefreshTokenStore:
    """
    Return the refresh token store selected by ``REFRESH_TOKEN_BACKEND``.

    :raises ValueError: On an unknown backend name.
    """
    name = (backend or "sqlalchemy").strip().lower()
    if name == "sqlalchemy":
        return SQLAlchemyRefreshTokenStore()
    if name == "redis":
        return RedisRefreshTokenStore(r=get_redis())
    raise ValueError(f"Unknown REFRESH_TOKEN_BACKEND {backend!r}.")


def init_app(app: Flask) -> None:
    """
    Validate auth configuration and register the services on ``app``.

    Misconfiguration (empty secret, too few refresh-token bytes, unknown
    backend) raises ``ValueError`` here, at startup.
    """
    settings = AuthSettings.from_config(app.config)
    hasher = WerkzeugPasswordHasher(method=app.config.get("PASSWORD_HASH_METHOD", "scrypt"))
    identity = IdentityService(hasher=hasher, policy=PasswordPolicy.from_config(app.config))
    auth = AuthService(
        credential_store=identity,
        refresh_store=build_refresh_store(app.config.get("REFRESH_TOKEN_BACKEND", "sqlalchemy")),
        token_issuer=PyJWTAccessTokenIssuer(settings),
        settings=settings,
        password_hasher=hasher,
    )
    app.extensions[IDENTITY_SERVICE_KEY] = identity
    app.extensions[AUTH_SERVICE_KEY] = auth


def get_auth_service() -> AuthService:
    return current_app.extensions[AUTH_SERVICE_KEY]


def get_identity_service() -> IdentityService:
    return current_app.extensions[IDENTITY_SERVICE_KEY]

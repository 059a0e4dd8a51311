from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

# Below this the refresh token stops being a meaningful bearer secret.
MIN_REFRESH_TOKEN_BYTES = 48


class ErrorKind(str, Enum):
    """Classification of an expected authentication failure."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"


# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param username: Requested public username.
    :type username: str
    :param email: Login email.
    :type email: str
    :param password: Raw password (policy-checked by the credential store).
    :type password: str
    :param first_name: Optional given name.
    :type first_name: str | None
    :param last_name: Optional family name.
    :type last_name: str | None
    """

    username: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email_or_username: Email address or username, tried in that order.
    :type email_or_username: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email_or_username: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    refresh_token: str


@dataclass(frozen=True, slots=True)
class RevokeIn:
    refresh_token: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Tagged outcome of register / login / refresh.

    On success the three token fields are set and ``errors`` is empty; on
    failure the token fields are ``None`` and ``error_kind`` classifies the
    cause.

    :ivar succeeded: Whether the operation produced a session.
    :ivar access_token: Signed access token.
    :ivar refresh_token: New opaque refresh token value.
    :ivar access_token_expires_at: Access-token expiry instant (UTC).
    :ivar errors: Human-readable failure messages.
    :ivar error_kind: Failure classification.
    """

    succeeded: bool
    access_token: str | None = None
    refresh_token: str | None = None
    access_token_expires_at: datetime | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)
    error_kind: ErrorKind | None = None

    @classmethod
    def success(
        cls, access_token: str, refresh_token: str, access_token_expires_at: datetime
    ) -> AuthResult:
        return cls(
            succeeded=True,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=access_token_expires_at,
        )

    @classmethod
    def failure(cls, kind: ErrorKind, *errors: str | Sequence[str]) -> AuthResult:
        flat: list[str] = []
        for item in errors:
            flat.extend([item] if isinstance(item, str) else item)
        return cls(succeeded=False, errors=tuple(flat), error_kind=kind)


# ------------------------------ Settings ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Immutable token configuration injected into the orchestrator and issuer.

    :param secret: Symmetric signing secret.
    :param issuer: ``iss`` claim value, verified on decode.
    :param audience: ``aud`` claim value, verified on decode.
    :param access_token_lifetime: Access-token validity window.
    :param refresh_token_lifetime: Refresh-token validity window.
    :param algorithm: HMAC algorithm name understood by PyJWT.
    :param refresh_token_bytes: Random bytes per refresh token.
    :raises ValueError: On an empty secret, a non-positive lifetime or too
        little refresh-token entropy.
    """

    secret: str
    issuer: str
    audience: str
    access_token_lifetime: timedelta = timedelta(minutes=15)
    refresh_token_lifetime: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    refresh_token_bytes: int = 64

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("JWT_SECRET_KEY must be configured.")
        if not self.algorithm.startswith("HS"):
            raise ValueError("Only symmetric HS* algorithms are supported.")
        if self.access_token_lifetime <= timedelta(0):
            raise ValueError("Access token lifetime must be positive.")
        if self.refresh_token_lifetime <= timedelta(0):
            raise ValueError("Refresh token lifetime must be positive.")
        if self.refresh_token_bytes < MIN_REFRESH_TOKEN_BYTES:
            raise ValueError(
                f"REFRESH_TOKEN_BYTES must be at least {MIN_REFRESH_TOKEN_BYTES}."
            )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AuthSettings:
        """Build settings from a Flask config mapping."""
        return cls(
            secret=config.get("JWT_SECRET_KEY") or "",
            issuer=config.get("JWT_ISSUER", "readlog"),
            audience=config.get("JWT_AUDIENCE", "readlog-clients"),
            access_token_lifetime=timedelta(
                minutes=int(config.get("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", 15))
            ),
            refresh_token_lifetime=timedelta(days=int(config.get("REFRESH_TOKEN_EXPIRES_DAYS", 7))),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            refresh_token_bytes=int(config.get("REFRESH_TOKEN_BYTES", 64)),
        )

"""
readlog.services._shared.ports
==============================

Ports (hexagonal interfaces) the authentication services depend on.

Modules
-------
- :mod:`credential_store`:
    :class:`~.CredentialStore` and the :class:`~.UserSnapshot` read-model.
- :mod:`password_hasher`:
    :class:`~.PasswordHasher` for one-way password hashing.
- :mod:`token_issuer`:
    :class:`~.AccessTokenIssuer` for signing and verifying access tokens.
- :mod:`refresh_token_store`:
    :class:`~.RefreshTokenStore`, :class:`~.RotationResult` and
    :class:`~.RefreshTokenView` for refresh-token persistence and rotation.

Concrete adapters (SQLAlchemy, Redis, PyJWT, Werkzeug) live under
``readlog.infra``; in-memory doubles sit next to their port for tests.
"""

from __future__ import annotations

from .credential_store import CredentialStore, InMemoryCredentialStore, UserSnapshot
from .password_hasher import PasswordHasher
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
    RotationResult,
)
from .token_issuer import AccessTokenIssuer, IssuedAccessToken

__all__ = [
    "AccessTokenIssuer",
    "CredentialStore",
    "InMemoryCredentialStore",
    "InMemoryRefreshTokenStore",
    "IssuedAccessToken",
    "PasswordHasher",
    "RefreshTokenStore",
    "RefreshTokenView",
    "RotationResult",
    "UserSnapshot",
]

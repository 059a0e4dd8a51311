"""PyJWT-backed access token issuer.

Tokens are compact HS* JWS values. The claim set is shaped so that
Flask-JWT-Extended can verify it on protected endpoints with the same
secret, issuer and audience (``sub`` is a string, ``type`` is ``"access"``).
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any, cast

import jwt

from readlog.services._shared.ports import AccessTokenIssuer, IssuedAccessToken, UserSnapshot
from readlog.services.auth.dto import AuthSettings

REQUIRED_CLAIMS = ["exp", "iat", "nbf", "iss", "aud", "sub", "jti"]


class PyJWTAccessTokenIssuer(AccessTokenIssuer):
    """
    Sign and verify access tokens with a symmetric key.

    Parameters
    ----------
    settings : AuthSettings
        Secret, algorithm, issuer, audience and access-token lifetime.
    """

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    def build_claims(
        self, user: UserSnapshot, roles: Sequence[str], *, now: datetime, jti: str
    ) -> dict[str, Any]:
        """Return the claim set for ``user`` issued at ``now``.

        ``now`` is truncated to whole seconds so ``exp`` round-trips exactly.
        """
        issued_at = now.replace(microsecond=0)
        claims: dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "roles": sorted(set(roles)),
            "jti": jti,
            "type": "access",
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + self._settings.access_token_lifetime,
        }
        if user.first_name and user.first_name.strip():
            claims["given_name"] = user.first_name
        if user.last_name and user.last_name.strip():
            claims["family_name"] = user.last_name
        return claims

    def issue(
        self, user: UserSnapshot, roles: Sequence[str], *, now: datetime
    ) -> IssuedAccessToken:
        """
        Sign a new access token.

        :param user: Identity snapshot to embed.
        :param roles: Role names granted to the user.
        :param now: Issuance instant (timezone-aware UTC).
        :returns: Token, its expiry and its ``jti``.
        :rtype: IssuedAccessToken
        """
        jti = str(uuid.uuid4())
        claims = self.build_claims(user, roles, now=now, jti=jti)
        token = jwt.encode(claims, self._settings.secret, algorithm=self._settings.algorithm)
        return IssuedAccessToken(token=token, expires_at=claims["exp"], jti=jti)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify and decode an access token.

        :param token: Compact JWT.
        :returns: Verified claims.
        :raises jwt.InvalidTokenError: On a bad signature, wrong issuer or
            audience, expiry, a future ``nbf``, missing claims or a non-access token type.
        """
        claims = cast(
            dict[str, Any],
            jwt.decode(
                token,
                self._settings.secret,
                algorithms=[self._settings.algorithm],
                audience=self._settings.audience,
                issuer=self._settings.issuer,
                options={"require": REQUIRED_CLAIMS},
            ),
        )
        if claims.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token.")
        return claims

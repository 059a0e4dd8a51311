"""Unit tests for the PyJWT access token issuer."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from readlog.infra.jwt.pyjwt_access_token_issuer import PyJWTAccessTokenIssuer
from readlog.services._shared.ports import UserSnapshot
from readlog.services.auth.dto import AuthSettings

SECRET = "issuer-test-secret-with-at-least-32-bytes"


@pytest.fixture()
def settings():
    return AuthSettings(secret=SECRET, issuer="readlog", audience="readlog-clients")


@pytest.fixture()
def issuer(settings):
    return PyJWTAccessTokenIssuer(settings)


@pytest.fixture()
def user():
    return UserSnapshot(id=uuid.uuid4(), email="i@example.com", username="issuer")


def _now():
    return datetime.now(UTC)


def _tamper(token: str, part: int) -> str:
    """Flip the first character of the payload (1) or signature (2) segment."""
    segments = token.split(".")
    first = segments[part][0]
    segments[part] = ("A" if first != "A" else "B") + segments[part][1:]
    return ".".join(segments)


class TestIssue:
    def test_claims(self, issuer, user):
        now = _now()
        issued = issuer.issue(user, ["writer", "admin", "writer"], now=now)
        claims = issuer.decode(issued.token)

        assert claims["sub"] == str(user.id)
        assert claims["email"] == "i@example.com"
        assert claims["username"] == "issuer"
        assert claims["roles"] == ["admin", "writer"]
        assert claims["type"] == "access"
        assert claims["iss"] == "readlog"
        assert claims["aud"] == "readlog-clients"
        assert claims["jti"] == issued.jti
        assert claims["exp"] - claims["iat"] == 15 * 60
        assert claims["nbf"] == claims["iat"]
        assert "given_name" not in claims and "family_name" not in claims

    def test_expiry_matches_exp_claim(self, issuer, user):
        issued = issuer.issue(user, [], now=_now())
        assert issued.expires_at.microsecond == 0
        assert int(issued.expires_at.timestamp()) == issuer.decode(issued.token)["exp"]

    def test_optional_names_only_when_present(self, issuer):
        named = UserSnapshot(
            id=uuid.uuid4(), email="n@example.com", username="named", first_name="Ada", last_name=" "
        )
        claims = issuer.build_claims(named, [], now=_now(), jti="j")
        assert claims["given_name"] == "Ada"
        assert "family_name" not in claims

    def test_each_issue_has_fresh_jti(self, issuer, user):
        now = _now()
        assert issuer.issue(user, [], now=now).jti != issuer.issue(user, [], now=now).jti


class TestDecode:
    def test_rejects_tampered_payload(self, issuer, user):
        token = issuer.issue(user, [], now=_now()).token
        with pytest.raises(jwt.InvalidTokenError):
            issuer.decode(_tamper(token, 1))

    def test_rejects_tampered_signature(self, issuer, user):
        token = issuer.issue(user, [], now=_now()).token
        with pytest.raises(jwt.InvalidSignatureError):
            issuer.decode(_tamper(token, 2))

    def test_rejects_expired(self, issuer, user):
        token = issuer.issue(user, [], now=_now() - timedelta(hours=1)).token
        with pytest.raises(jwt.ExpiredSignatureError):
            issuer.decode(token)

    def test_rejects_other_audience_and_issuer(self, settings, user):
        token = PyJWTAccessTokenIssuer(settings).issue(user, [], now=_now()).token
        other_aud = AuthSettings(secret=SECRET, issuer="readlog", audience="someone-else")
        other_iss = AuthSettings(secret=SECRET, issuer="elsewhere", audience="readlog-clients")

        with pytest.raises(jwt.InvalidAudienceError):
            PyJWTAccessTokenIssuer(other_aud).decode(token)
        with pytest.raises(jwt.InvalidIssuerError):
            PyJWTAccessTokenIssuer(other_iss).decode(token)

    def test_rejects_non_access_type(self, issuer, user):
        now = _now().replace(microsecond=0)
        claims = issuer.build_claims(user, [], now=now, jti="x")
        claims["type"] = "refresh"
        token = jwt.encode(claims, SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError, match="Not an access token"):
            issuer.decode(token)

    def test_rejects_missing_jti(self, issuer, user):
        claims = issuer.build_claims(user, [], now=_now(), jti="x")
        del claims["jti"]
        with pytest.raises(jwt.MissingRequiredClaimError):
            issuer.decode(jwt.encode(claims, SECRET, algorithm="HS256"))

    def test_rejects_token_not_yet_valid(self, issuer, user):
        token = issuer.issue(user, [], now=_now() + timedelta(hours=1)).token
        with pytest.raises(jwt.ImmatureSignatureError):
            issuer.decode(token)

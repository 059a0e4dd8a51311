"""Password policy, identifier rules and AuthSettings validation."""

from __future__ import annotations

from datetime import timedelta

import pytest
from readlog.services._shared.policies import PasswordPolicy, identifier_violations
from readlog.services.auth.dto import AuthSettings, MIN_REFRESH_TOKEN_BYTES


class TestPasswordPolicy:
    def test_strong_password_passes(self):
        assert PasswordPolicy().violations("Abcdefg1") == []

    def test_each_rule_reports_its_message(self):
        policy = PasswordPolicy(require_non_alphanumeric=True)
        assert policy.violations("abc") == [
            "Passwords must be at least 8 characters.",
            "Passwords must have at least one digit ('0'-'9').",
            "Passwords must have at least one uppercase ('A'-'Z').",
            "Passwords must have at least one non alphanumeric character.",
        ]

    def test_lowercase_rule(self):
        assert PasswordPolicy().violations("ABCDEFG1") == [
            "Passwords must have at least one lowercase ('a'-'z')."
        ]

    def test_from_config(self):
        policy = PasswordPolicy.from_config(
            {"PASSWORD_MIN_LENGTH": "12", "PASSWORD_REQUIRE_UPPERCASE": False}
        )
        assert policy.min_length == 12
        assert policy.require_uppercase is False
        assert policy.require_digit is True

    def test_min_length_must_be_positive(self):
        with pytest.raises(ValueError):
            PasswordPolicy(min_length=0)


class TestIdentifierRules:
    def test_valid(self):
        assert identifier_violations("a@example.com", "reader_1") == []

    @pytest.mark.parametrize("username", ["two words", "x" * 51])
    def test_bad_username(self, username):
        assert len(identifier_violations("a@example.com", username)) == 1


class TestAuthSettings:
    BASE = dict(secret="s" * 32, issuer="readlog", audience="readlog-clients")

    def test_defaults(self):
        settings = AuthSettings(**self.BASE)
        assert settings.access_token_lifetime == timedelta(minutes=15)
        assert settings.refresh_token_lifetime == timedelta(days=7)
        assert settings.refresh_token_bytes == 64

    @pytest.mark.parametrize(
        "override",
        [
            {"secret": ""},
            {"access_token_lifetime": timedelta(0)},
            {"refresh_token_lifetime": timedelta(seconds=-1)},
            {"refresh_token_bytes": MIN_REFRESH_TOKEN_BYTES - 1},
            {"algorithm": "RS256"},
        ],
    )
    def test_rejects_misconfiguration(self, override):
        with pytest.raises(ValueError):
            AuthSettings(**{**self.BASE, **override})

    def test_from_config(self):
        settings = AuthSettings.from_config(
            {
                "JWT_SECRET_KEY": "k" * 32,
                "JWT_ACCESS_TOKEN_EXPIRES_MINUTES": "5",
                "REFRESH_TOKEN_EXPIRES_DAYS": 30,
                "REFRESH_TOKEN_BYTES": 48,
            }
        )
        assert settings.access_token_lifetime == timedelta(minutes=5)
        assert settings.refresh_token_lifetime == timedelta(days=30)
        assert settings.refresh_token_bytes == 48
        assert settings.audience == "readlog-clients"

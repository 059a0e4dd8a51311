"""Unit tests for the User and Role models."""

from __future__ import annotations

import pytest
from readlog.models.user import User
from sqlalchemy.exc import IntegrityError

from tests.factories import TEST_HASHER
from tests.factories.user import RoleFactory, UserFactory


class TestUserModel:
    def test_email_is_normalized(self, session):
        """Email is trimmed and lower-cased on assignment."""
        user = UserFactory(email="  Alice@Example.COM ")
        assert user.email == "alice@example.com"

    def test_invalid_email_rejected(self):
        with pytest.raises(ValueError, match="Email"):
            User(email="not-an-email", username="someone")

    def test_username_trimmed_and_normalized(self, session):
        """Username keeps its case; the normalized copy is lower-cased."""
        user = UserFactory(username="  MixedCase ")
        assert user.username == "MixedCase"
        assert user.normalized_username == "mixedcase"

    def test_blank_username_rejected(self):
        with pytest.raises(ValueError, match="Username"):
            User(email="a@example.com", username="   ")

    def test_password_is_write_only(self, session):
        user = UserFactory()
        with pytest.raises(AttributeError):
            _ = user.password

    def test_set_and_verify_password(self, session):
        """The stored hash verifies the raw password and nothing else."""
        user = UserFactory(password="S3cret-pass")
        assert user.password_hash and user.password_hash != "S3cret-pass"
        assert user.verify_password("S3cret-pass", TEST_HASHER)
        assert not user.verify_password("wrong", TEST_HASHER)

    def test_set_password_rejects_empty(self, session):
        user = UserFactory()
        with pytest.raises(ValueError):
            user.set_password("", TEST_HASHER)

    def test_verify_password_without_hash_is_false(self):
        user = User(email="nohash@example.com", username="nohash")
        assert user.verify_password("anything", TEST_HASHER) is False

    def test_role_names_sorted(self, session):
        user = UserFactory(roles=[RoleFactory(name="writer"), RoleFactory(name="admin")])
        assert user.role_names == ["admin", "writer"]

    def test_email_unique(self, session):
        UserFactory(email="dup@example.com")
        with pytest.raises(IntegrityError):
            UserFactory(email="DUP@example.com")
        session.rollback()

    def test_username_unique_case_insensitive(self, session):
        """``Bob`` and ``bob`` collide on the normalized column."""
        UserFactory(username="Bob")
        with pytest.raises(IntegrityError):
            UserFactory(username="bob")
        session.rollback()

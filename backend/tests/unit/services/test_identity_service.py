"""Unit tests for IdentityService, the database-backed credential store."""

from __future__ import annotations

import uuid

import pytest
from readlog.repositories.user import UserRepository
from readlog.services._shared.errors import ConflictError, NotFoundError, ValidationError
from readlog.services._shared.policies import PasswordPolicy
from readlog.services.identity.service import IdentityService

from tests.factories import DEFAULT_PASSWORD, TEST_HASHER
from tests.factories.user import RoleFactory, UserFactory

PASSWORD = "Str0ng-enough"


@pytest.fixture()
def svc(session) -> IdentityService:
    return IdentityService(hasher=TEST_HASHER, policy=PasswordPolicy())


class TestCreateAccount:
    def test_persists_normalized_user(self, svc):
        snap = svc.create_account(
            email="  New@Example.com ", username=" NewUser ", password=PASSWORD, first_name=" Ann "
        )

        assert snap.email == "new@example.com"
        assert snap.username == "NewUser"
        assert snap.first_name == "Ann"
        assert snap.last_name is None
        assert svc.find_by_id(snap.id) == snap

    def test_password_is_hashed(self, svc, session):
        snap = svc.create_account(email="h@example.com", username="hashed", password=PASSWORD)

        row = UserRepository(session=session).get(snap.id)
        assert row.password_hash != PASSWORD
        assert svc.verify_password(snap, PASSWORD)
        assert not svc.verify_password(snap, PASSWORD.lower())

    def test_collects_all_violations(self, svc):
        with pytest.raises(ValidationError) as err:
            svc.create_account(email="bad", username="has space", password="short")

        messages = err.value.messages
        assert "Email 'bad' is invalid." in messages
        assert any(m.startswith("Username 'has space' is invalid") for m in messages)
        assert "Passwords must be at least 8 characters." in messages

    def test_policy_is_configurable(self, session):
        lenient = IdentityService(
            hasher=TEST_HASHER,
            policy=PasswordPolicy(min_length=4, require_digit=False, require_uppercase=False),
        )
        assert lenient.create_account(email="l@example.com", username="lenient", password="abcd")

    def test_duplicate_email(self, svc):
        UserFactory(email="taken@example.com")

        with pytest.raises(ConflictError) as err:
            svc.create_account(email="TAKEN@example.com", username="fresh", password=PASSWORD)
        assert err.value.detail == "Email 'taken@example.com' is already taken."

    def test_duplicate_username(self, svc):
        UserFactory(username="Taken")

        with pytest.raises(ConflictError) as err:
            svc.create_account(email="fresh@example.com", username="taken", password=PASSWORD)
        assert err.value.detail == "Username 'taken' is already taken."

    def test_race_on_unique_constraint_maps_to_conflict(self, svc, monkeypatch):
        """A concurrent insert that slips past the pre-check still yields a conflict."""
        UserFactory(email="race@example.com")
        monkeypatch.setattr(UserRepository, "exists_by_email", lambda self, email: False)

        with pytest.raises(ConflictError, match="already taken"):
            svc.create_account(email="race@example.com", username="racer", password=PASSWORD)


class TestLookups:
    def test_find_by_email_and_username(self, svc):
        user = UserFactory(email="look@example.com", username="Looker")

        assert svc.find_by_email("LOOK@example.com").id == user.id
        assert svc.find_by_username("looker").id == user.id
        assert svc.find_by_email_or_username("Looker").id == user.id
        assert svc.find_by_email("nobody@example.com") is None
        assert svc.find_by_id(uuid.uuid4()) is None

    def test_verify_password_for_factory_user(self, svc):
        user = UserFactory()
        snap = svc.find_by_id(user.id)
        assert svc.verify_password(snap, DEFAULT_PASSWORD)


class TestRoles:
    def test_ensure_role_is_idempotent(self, svc, session):
        assert svc.ensure_role(" editor ") == "editor"
        assert svc.ensure_role("editor") == "editor"

    def test_ensure_role_requires_name(self, svc):
        with pytest.raises(ValidationError):
            svc.ensure_role("  ")

    def test_assign_role_returns_sorted_names(self, svc):
        user = UserFactory(roles=[RoleFactory(name="writer")])
        RoleFactory(name="admin")

        assert svc.assign_role(user.id, "admin") == ["admin", "writer"]
        assert svc.assign_role(user.id, "admin") == ["admin", "writer"]
        assert svc.get_roles(svc.find_by_id(user.id)) == ["admin", "writer"]

    def test_assign_role_unknown_user_or_role(self, svc):
        RoleFactory(name="admin")
        user = UserFactory()

        with pytest.raises(NotFoundError):
            svc.assign_role(uuid.uuid4(), "admin")
        with pytest.raises(NotFoundError):
            svc.assign_role(user.id, "ghost")


class TestDeleteAccount:
    def test_removes_user_once(self, svc):
        user = UserFactory(roles=[RoleFactory(name="reviewer")])

        assert svc.delete_account(user.id) is True
        assert svc.find_by_id(user.id) is None
        assert svc.delete_account(user.id) is False
        assert svc.delete_account(uuid.uuid4()) is False

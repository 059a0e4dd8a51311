"""
IdentityService
===============

Database-backed credential store for the ``User`` aggregate:

- Account creation with format, password-policy and uniqueness checks
- Lookups by email, username and id
- Password verification (no token issuance)
- Role administration
"""

from __future__ import annotations

import uuid

from sqlalchemy.exc import IntegrityError

from readlog.models.user import Role, User
from readlog.repositories.user import UserRepository
from readlog.services._shared.base import BaseService, Clock, ServiceContext
from readlog.services._shared.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    violates,
)
from readlog.services._shared.policies import PasswordPolicy, identifier_violations
from readlog.services._shared.ports import CredentialStore, PasswordHasher, UserSnapshot


def _snapshot(user: User) -> UserSnapshot:
    return UserSnapshot(
        id=user.id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
    )


class IdentityService(BaseService, CredentialStore):
    """
    Application service for the ``User`` aggregate.

    :param hasher: Password hashing strategy.
    :param policy: Password strength rules applied on account creation.
    """

    def __init__(
        self,
        *,
        hasher: PasswordHasher,
        policy: PasswordPolicy | None = None,
        ctx: ServiceContext | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(ctx=ctx, clock=clock)
        self.hasher = hasher
        self.policy = policy or PasswordPolicy()

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def create_account(
        self,
        *,
        email: str,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserSnapshot:
        """
        Create a user account.

        :returns: Snapshot of the persisted user.
        :rtype: UserSnapshot
        :raises ValidationError: On a malformed email/username or a password
            that breaks the policy (all violations are reported together).
        :raises ConflictError: When the email or username is already taken.
        """
        errors = identifier_violations(email, username)
        errors.extend(self.policy.violations(password or ""))
        if errors:
            raise ValidationError(errors)

        email_n = email.strip().lower()
        username_t = username.strip()

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists_by_email(email_n):
                raise ConflictError("User", f"Email '{email_n}' is already taken.")
            if repo.exists_by_username(username_t):
                raise ConflictError("User", f"Username '{username_t}' is already taken.")

            user = User(
                email=email_n,
                username=username_t,
                first_name=(first_name or "").strip() or None,
                last_name=(last_name or "").strip() or None,
            )
            user.set_password(password, self.hasher)
            try:
                repo.add(user)
            except IntegrityError as exc:
                # Lost a race against a concurrent registration.
                if violates(exc, "uq_users_email") or violates(exc, "users.email"):
                    raise ConflictError("User", f"Email '{email_n}' is already taken.") from exc
                if violates(exc, "uq_users_normalized_username") or violates(
                    exc, "users.normalized_username"
                ):
                    raise ConflictError(
                        "User", f"Username '{username_t}' is already taken."
                    ) from exc
                raise

            return _snapshot(user)

    # --------------------------------------------------------------------- #
    # Lookups
    # --------------------------------------------------------------------- #

    def find_by_email(self, email: str) -> UserSnapshot | None:
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            return _snapshot(user) if user else None

    def find_by_username(self, username: str) -> UserSnapshot | None:
        with self.ro_uow() as uow:
            user = uow.users.get_by_username(username)
            return _snapshot(user) if user else None

    def find_by_id(self, user_id: uuid.UUID) -> UserSnapshot | None:
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            return _snapshot(user) if user else None

    def find_by_email_or_username(self, identifier: str) -> UserSnapshot | None:
        """Resolve ``identifier`` as an email first, then as a username."""
        return self.find_by_email(identifier) or self.find_by_username(identifier)

    # --------------------------------------------------------------------- #
    # Authentication
    # --------------------------------------------------------------------- #

    def verify_password(self, user: UserSnapshot, password: str) -> bool:
        """
        Check ``password`` against the stored hash of ``user``.

        :returns: ``False`` when the user no longer exists or the password
            does not match.
        :rtype: bool
        """
        with self.ro_uow() as uow:
            row = uow.users.get(user.id)
            if row is None:
                return False
            return row.verify_password(password, self.hasher)

    # --------------------------------------------------------------------- #
    # Roles
    # --------------------------------------------------------------------- #

    def get_roles(self, user: UserSnapshot) -> list[str]:
        with self.ro_uow() as uow:
            row = uow.users.get(user.id)
            return row.role_names if row else []

    def ensure_role(self, name: str) -> str:
        """
        Create role ``name`` if missing.

        :returns: The normalised role name.
        :raises ValidationError: If ``name`` is blank.
        """
        role_name = (name or "").strip()
        if not role_name:
            raise ValidationError("Role name is required.")
        with self.rw_uow() as uow:
            if uow.roles.get_by_name(role_name) is None:
                uow.roles.add(Role(name=role_name))
        return role_name

    def delete_account(self, user_id: uuid.UUID) -> bool:
        """Remove an account and its role grants.

        :returns: ``False`` when no such user exists.
        """
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                return False
            uow.users.delete(user)
            return True

    def assign_role(self, user_id: uuid.UUID, role_name: str) -> list[str]:
        """
        Grant an existing role to a user (idempotent).

        :returns: The user's role names after the grant, sorted.
        :raises NotFoundError: If the user or the role does not exist.
        """
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            role = uow.roles.get_by_name(role_name.strip())
            if role is None:
                raise NotFoundError("Role", role_name)
            if role not in user.roles:
                user.roles.append(role)
            return user.role_names

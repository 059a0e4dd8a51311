from __future__ import annotations

import threading
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from readlog.services._shared.errors import ConflictError, ValidationError
from readlog.services._shared.policies.account import identifier_violations

if TYPE_CHECKING:
    from readlog.services._shared.policies.password import PasswordPolicy

    from .password_hasher import PasswordHasher


@dataclass(frozen=True, slots=True)
class UserSnapshot:
    """
    Public-safe view of a user, detached from any session.

    The password hash is deliberately absent.
    """

    id: uuid.UUID
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None


class CredentialStore(Protocol):
    """
    Port for the identity store consumed by the authentication orchestrator.

    ``create_account`` raises :class:`ValidationError` for malformed input or
    a weak password and :class:`ConflictError` for a duplicate email or
    username. Lookups return ``None`` when nothing matches. ``delete_account``
    removes an account that never got its first session.
    """

    def create_account(
        self,
        *,
        email: str,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserSnapshot: ...

    def find_by_email(self, email: str) -> UserSnapshot | None: ...

    def find_by_username(self, username: str) -> UserSnapshot | None: ...

    def find_by_id(self, user_id: uuid.UUID) -> UserSnapshot | None: ...

    def verify_password(self, user: UserSnapshot, password: str) -> bool: ...

    def get_roles(self, user: UserSnapshot) -> list[str]: ...

    def delete_account(self, user_id: uuid.UUID) -> bool: ...


@dataclass(slots=True)
class _Account:
    snapshot: UserSnapshot
    password_hash: str
    roles: set[str] = field(default_factory=set)


class InMemoryCredentialStore(CredentialStore):
    """
    Dict-backed credential store for unit tests.

    Applies the same normalisation (lower-cased email and username keys),
    password policy and conflict messages as the database-backed service.
    """

    def __init__(self, *, hasher: PasswordHasher, policy: PasswordPolicy) -> None:
        self._hasher = hasher
        self._policy = policy
        self._by_id: dict[uuid.UUID, _Account] = {}
        self._lock = threading.Lock()

    def create_account(
        self,
        *,
        email: str,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserSnapshot:
        email_n = (email or "").strip().lower()
        username_t = (username or "").strip()
        errors = identifier_violations(email, username)
        errors.extend(self._policy.violations(password or ""))
        if errors:
            raise ValidationError(errors)

        with self._lock:
            if self.find_by_email(email_n) is not None:
                raise ConflictError("User", f"Email '{email_n}' is already taken.")
            if self.find_by_username(username_t) is not None:
                raise ConflictError("User", f"Username '{username_t}' is already taken.")
            snapshot = UserSnapshot(
                id=uuid.uuid4(),
                email=email_n,
                username=username_t,
                first_name=first_name,
                last_name=last_name,
            )
            self._by_id[snapshot.id] = _Account(snapshot, self._hasher.hash(password))
        return snapshot

    def find_by_email(self, email: str) -> UserSnapshot | None:
        key = email.strip().lower()
        return next(
            (a.snapshot for a in self._by_id.values() if a.snapshot.email == key), None
        )

    def find_by_username(self, username: str) -> UserSnapshot | None:
        key = username.strip().lower()
        return next(
            (a.snapshot for a in self._by_id.values() if a.snapshot.username.lower() == key),
            None,
        )

    def find_by_id(self, user_id: uuid.UUID) -> UserSnapshot | None:
        account = self._by_id.get(user_id)
        return account.snapshot if account else None

    def verify_password(self, user: UserSnapshot, password: str) -> bool:
        account = self._by_id.get(user.id)
        return account is not None and self._hasher.verify(account.password_hash, password)

    def get_roles(self, user: UserSnapshot) -> list[str]:
        account = self._by_id.get(user.id)
        return sorted(account.roles) if account else []

    def delete_account(self, user_id: uuid.UUID) -> bool:
        with self._lock:
            return self._by_id.pop(user_id, None) is not None

    # Test helpers

    def grant(self, user_id: uuid.UUID, role: str) -> None:
        self._by_id[user_id].roles.add(role)

    def all(self) -> Sequence[UserSnapshot]:
        return [a.snapshot for a in self._by_id.values()]

from __future__ import annotations

import threading
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


@dataclass(frozen=True, slots=True)
class RefreshTokenView:
    """
    Read-model for a stored refresh token.

    :ivar token: Token value (bearer secret).
    :ivar user_id: Owner user id.
    :ivar created_at: Issuance instant (UTC).
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked: Whether the token has been revoked (explicitly or by rotation).
    :ivar revoked_at: First revocation instant, if any.
    """

    token: str
    user_id: uuid.UUID
    created_at: datetime
    expires_at: datetime
    revoked: bool = False
    revoked_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)


class RefreshTokenStore(Protocol):
    """
    Stateful store for refresh tokens.

    Tokens are never deleted. ``rotate`` MUST be atomic: the old token is
    revoked and the new one inserted together, and of N concurrent rotations
    of the same token at most one returns ``RotationResult.OK``.
    """

    def add(
        self,
        *,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Persist a brand-new active token."""

    def get(self, token: str) -> RefreshTokenView | None:
        """Fetch a snapshot of the token in any state."""

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationResult:
        """
        Atomically revoke ``old_token`` and insert ``new_token`` for the same owner.

        :returns: ``RotationResult.OK`` on success, otherwise the specific failure.
        """

    def revoke(self, token: str, *, now: datetime) -> bool:
        """
        Revoke one token, expired or not.

        :returns: ``True`` if this call revoked it; ``False`` if it is unknown
            or was already revoked.
        """

    def revoke_all_for_user(self, user_id: uuid.UUID, *, now: datetime) -> int:
        """Revoke every non-revoked token of a user. :returns: rows affected."""

    def list_active_for_user(
        self, user_id: uuid.UUID, *, now: datetime
    ) -> Sequence[RefreshTokenView]:
        """List active tokens of a user, newest first."""


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with per-token mutual exclusion.

    .. note::
       The registry lock only guards the dictionaries; state transitions of
       a given token happen under that token's own lock, which is what
       serializes concurrent redemptions of the same value.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, RefreshTokenView] = {}
        self._token_locks: dict[str, threading.Lock] = {}
        self._registry = threading.Lock()

    def _lock_for(self, token: str) -> threading.Lock:
        with self._registry:
            return self._token_locks.setdefault(token, threading.Lock())

    def add(
        self,
        *,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        with self._registry:
            if token in self._tokens:
                raise ValueError("Refresh token value already exists.")
            self._tokens[token] = RefreshTokenView(
                token=token,
                user_id=user_id,
                created_at=created_at,
                expires_at=expires_at,
            )

    def get(self, token: str) -> RefreshTokenView | None:
        with self._registry:
            return self._tokens.get(token)

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationResult:
        with self._lock_for(old_token):
            current = self.get(old_token)
            if current is None:
                return RotationResult.NOT_FOUND
            if current.revoked:
                return RotationResult.REVOKED
            if current.is_expired(now):
                return RotationResult.EXPIRED
            # Insert first: a collision leaves the old token untouched.
            self.add(
                token=new_token,
                user_id=current.user_id,
                created_at=now,
                expires_at=new_expires_at,
            )
            with self._registry:
                self._tokens[old_token] = replace(current, revoked=True, revoked_at=now)
            return RotationResult.OK

    def revoke(self, token: str, *, now: datetime) -> bool:
        with self._lock_for(token):
            current = self.get(token)
            if current is None or current.revoked:
                return False
            with self._registry:
                self._tokens[token] = replace(current, revoked=True, revoked_at=now)
            return True

    def revoke_all_for_user(self, user_id: uuid.UUID, *, now: datetime) -> int:
        with self._registry:
            owned = [t.token for t in self._tokens.values() if t.user_id == user_id]
        return sum(1 for token in owned if self.revoke(token, now=now))

    def list_active_for_user(
        self, user_id: uuid.UUID, *, now: datetime
    ) -> Sequence[RefreshTokenView]:
        with self._registry:
            views = [t for t in self._tokens.values() if t.user_id == user_id]
        active = [v for v in views if v.is_active(now)]
        return sorted(active, key=lambda v: v.created_at, reverse=True)

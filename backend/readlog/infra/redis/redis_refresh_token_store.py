from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import redis

from readlog.services._shared.ports import RefreshTokenStore, RefreshTokenView, RotationResult


def _b(value: bytes | None, default: str = "") -> str:
    return value.decode() if value is not None else default


def _dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store.

    Layout: one hash per token at ``rt:{token}`` and one set per owner at
    ``rt:u:{user_id}`` indexing every token ever issued to that user. Keys
    carry no TTL: tokens are retained after expiry for audit and replay
    detection, like the relational store.

    State transitions use WATCH/MULTI/EXEC. If another client touches the
    watched token between the read and EXEC, the transaction aborts with
    ``WatchError`` and the check is re-run against the new state, so two
    concurrent rotations of one token cannot both succeed.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token: str) -> str:
        return f"rt:{token}"

    @staticmethod
    def _ku(user_id: uuid.UUID | str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _view(token: str, h: dict[bytes, bytes]) -> RefreshTokenView:
        revoked_at = _b(h.get(b"revoked_at"))
        return RefreshTokenView(
            token=token,
            user_id=uuid.UUID(_b(h.get(b"user_id"))),
            created_at=_dt(_b(h.get(b"created_at"))),
            expires_at=_dt(_b(h.get(b"expires_at"))),
            revoked=_b(h.get(b"revoked"), "0") == "1",
            revoked_at=_dt(revoked_at) if revoked_at else None,
        )

    @staticmethod
    def _mapping(user_id: uuid.UUID, created_at: datetime, expires_at: datetime) -> dict[str, str]:
        return {
            "user_id": str(user_id),
            "created_at": created_at.isoformat(),
            "expires_at": expires_at.isoformat(),
            "revoked": "0",
            "revoked_at": "",
        }

    # -------------------- API ------------------------

    def add(
        self,
        *,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Store a new active token; an existing value is never overwritten."""
        key = self._k(token)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    if p.exists(key):
                        p.unwatch()
                        raise ValueError("Refresh token value already exists.")

                    p.multi()
                    p.hset(key, mapping=self._mapping(user_id, created_at, expires_at))
                    p.sadd(self._ku(user_id), token)
                    p.execute()
                return
            except redis.WatchError:
                continue

    def get(self, token: str) -> RefreshTokenView | None:
        h = self.r.hgetall(self._k(token))
        return self._view(token, h) if h else None

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationResult:
        """
        Revoke ``old_token`` and create ``new_token`` in one MULTI/EXEC.

        Checks run in the same order as the relational store: existence,
        revocation, then expiry.
        """
        k_old = self._k(old_token)
        k_new = self._k(new_token)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, k_new)

                    h = p.hgetall(k_old)
                    if not h:
                        p.unwatch()
                        return RotationResult.NOT_FOUND
                    current = self._view(old_token, h)
                    if current.revoked:
                        p.unwatch()
                        return RotationResult.REVOKED
                    if current.is_expired(now):
                        p.unwatch()
                        return RotationResult.EXPIRED
                    if p.exists(k_new):
                        p.unwatch()
                        raise ValueError("Refresh token value already exists.")

                    p.multi()
                    p.hset(k_old, mapping={"revoked": "1", "revoked_at": now.isoformat()})
                    p.hset(k_new, mapping=self._mapping(current.user_id, now, new_expires_at))
                    p.sadd(self._ku(current.user_id), new_token)
                    p.execute()
                return RotationResult.OK
            except redis.WatchError:
                continue

    def revoke(self, token: str, *, now: datetime) -> bool:
        key = self._k(token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    state = p.hget(key, "revoked")
                    if state is None or _b(state) == "1":
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(key, mapping={"revoked": "1", "revoked_at": now.isoformat()})
                    p.execute()
                return True
            except redis.WatchError:
                continue

    def revoke_all_for_user(self, user_id: uuid.UUID, *, now: datetime) -> int:
        return sum(1 for token in self._tokens_of(user_id) if self.revoke(token, now=now))

    def list_active_for_user(
        self, user_id: uuid.UUID, *, now: datetime
    ) -> Sequence[RefreshTokenView]:
        views = [v for v in (self.get(t) for t in self._tokens_of(user_id)) if v is not None]
        active = [v for v in views if v.is_active(now)]
        return sorted(active, key=lambda v: v.created_at, reverse=True)

    def _tokens_of(self, user_id: uuid.UUID) -> list[str]:
        return sorted(
            m.decode() if isinstance(m, bytes | bytearray) else str(m)
            for m in self.r.smembers(self._ku(user_id))
        )

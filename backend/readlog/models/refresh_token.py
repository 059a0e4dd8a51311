"""Refresh token entity: opaque, single-use session secret."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import Boolean, DateTime, Index, String, UniqueConstraint, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column

from readlog.core.extensions import db

from .base import ReprMixin, UUIDPKMixin, as_utc


class RefreshToken(UUIDPKMixin, ReprMixin, db.Model):
    """
    Persisted refresh token.

    Fields
    ------
    token : str
        Random bearer secret; also the lookup key.
    user_id : uuid.UUID
        Owner. Deliberately not a cascading foreign key so rows outlive the
        user for audit.
    created_at, expires_at : datetime
        Absolute UTC instants fixed at issuance.
    revoked : bool
        Only stored state flag. ``Active`` and ``Expired`` are derived.
    revoked_at : datetime | None
        Set on the first revocation and never overwritten.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("token", name="uq_refresh_tokens_token"),
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    @classmethod
    def issue(
        cls, *, user_id: uuid.UUID, token: str, now: datetime, lifetime: timedelta
    ) -> RefreshToken:
        """
        Build a fresh, active token.

        :param user_id: Owner identifier.
        :param token: Random token value.
        :param now: Issuance instant (UTC).
        :param lifetime: Validity window added to ``now``.
        :raises ValueError: If ``lifetime`` is not positive.
        """
        if lifetime <= timedelta(0):
            raise ValueError("Refresh token lifetime must be positive.")
        return cls(
            user_id=user_id,
            token=token,
            created_at=now,
            expires_at=now + lifetime,
            revoked=False,
        )

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once ``now`` has reached ``expires_at``."""
        return as_utc(now) >= as_utc(self.expires_at)

    def is_active(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)

    def revoke(self, now: datetime) -> bool:
        """
        Mark the token revoked.

        :returns: ``True`` if this call changed the state, ``False`` if the
            token was already revoked (``revoked_at`` is left untouched).
        :rtype: bool
        """
        if self.revoked:
            return False
        self.revoked = True
        self.revoked_at = now
        return True

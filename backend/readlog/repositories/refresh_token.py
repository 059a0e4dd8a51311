"""Refresh token repository.

Revocations are issued as conditional ``UPDATE`` statements so the revoked
flag is the serialization point between concurrent redeemers: the caller
whose statement matched the row (``rowcount == 1``) wins, every other caller
matches nothing.

Bulk updates do not synchronize the identity map; loaded rows are stale
until the enclosing unit of work commits (which expires them).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import cast

from sqlalchemy import select, update

from readlog.models.refresh_token import RefreshToken
from readlog.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`."""

    model = RefreshToken

    def _filterable_fields(self):
        return {"token": RefreshToken.token, "user_id": RefreshToken.user_id}

    def get_by_token(self, token: str) -> RefreshToken | None:
        """Fetch a token row by its secret value (any state).

        :param token: Token value presented by the client.
        :type token: str
        :returns: Matching row or ``None``.
        :rtype: RefreshToken | None
        """
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def revoke_if_active(self, token: str, *, now: datetime) -> bool:
        """Compare-and-set revocation of an *active* token.

        :param token: Token value to revoke.
        :param now: Current instant; also recorded as ``revoked_at``.
        :returns: ``True`` if this call performed the transition.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke_if_not_revoked(self, token: str, *, now: datetime) -> bool:
        """Compare-and-set revocation regardless of expiry.

        :returns: ``True`` if this call performed the transition; ``False``
            when the token is unknown or was already revoked.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke_all_for_user(self, user_id: uuid.UUID, *, now: datetime) -> int:
        """Revoke every non-revoked token owned by ``user_id``.

        :returns: Number of rows transitioned.
        :rtype: int
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def list_active_for_user(self, user_id: uuid.UUID, *, now: datetime) -> list[RefreshToken]:
        """Return the user's active tokens, newest first."""
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
        )
        return list(self.session.execute(stmt).scalars().all())

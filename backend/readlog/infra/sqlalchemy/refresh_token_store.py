"""Relational refresh token store on top of the SQLAlchemy Unit of Work."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from readlog.models.base import as_utc
from readlog.models.refresh_token import RefreshToken
from readlog.services._shared.ports import RefreshTokenStore, RefreshTokenView, RotationResult
from readlog.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def _to_view(row: RefreshToken) -> RefreshTokenView:
    return RefreshTokenView(
        token=row.token,
        user_id=row.user_id,
        created_at=as_utc(row.created_at),
        expires_at=as_utc(row.expires_at),
        revoked=bool(row.revoked),
        revoked_at=as_utc(row.revoked_at) if row.revoked_at else None,
    )


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Refresh token store persisted in the ``refresh_tokens`` table.

    Every write runs in its own read-write Unit of Work. ``rotate`` performs
    the compare-and-set revocation and the insert of the successor in the
    same transaction: either both commit or neither does.

    :param uow_factory: Callable returning a fresh read-write UoW.
    :param ro_uow_factory: Callable returning a fresh read-only UoW.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = SQLAlchemyReadOnlyUnitOfWork,
    ) -> None:
        self._uow = uow_factory
        self._ro_uow = ro_uow_factory

    def add(
        self,
        *,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        with self._uow() as uow:
            uow.refresh_tokens.add(
                RefreshToken.issue(
                    user_id=user_id,
                    token=token,
                    now=created_at,
                    lifetime=expires_at - created_at,
                )
            )

    def get(self, token: str) -> RefreshTokenView | None:
        with self._ro_uow() as uow:
            row = uow.refresh_tokens.get_by_token(token)
            return _to_view(row) if row is not None else None

    def rotate(
        self,
        *,
        old_token: str,
        new_token: str,
        now: datetime,
        new_expires_at: datetime,
    ) -> RotationResult:
        with self._uow() as uow:
            repo = uow.refresh_tokens
            current = repo.get_by_token(old_token)
            if current is None:
                return RotationResult.NOT_FOUND
            if current.revoked:
                return RotationResult.REVOKED
            if current.is_expired(now):
                return RotationResult.EXPIRED
            # The conditional UPDATE is the serialization point; a concurrent
            # winner makes it match zero rows.
            if not repo.revoke_if_active(old_token, now=now):
                return RotationResult.REVOKED
            # Bring the loaded row in line with the UPDATE that just won.
            current.revoke(now)
            repo.add(
                RefreshToken.issue(
                    user_id=current.user_id,
                    token=new_token,
                    now=now,
                    lifetime=new_expires_at - now,
                )
            )
            return RotationResult.OK

    def revoke(self, token: str, *, now: datetime) -> bool:
        with self._uow() as uow:
            return uow.refresh_tokens.revoke_if_not_revoked(token, now=now)

    def revoke_all_for_user(self, user_id: uuid.UUID, *, now: datetime) -> int:
        with self._uow() as uow:
            return uow.refresh_tokens.revoke_all_for_user(user_id, now=now)

    def list_active_for_user(
        self, user_id: uuid.UUID, *, now: datetime
    ) -> Sequence[RefreshTokenView]:
        with self._ro_uow() as uow:
            return [_to_view(r) for r in uow.refresh_tokens.list_active_for_user(user_id, now=now)]

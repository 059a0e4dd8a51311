"""
Unit tests for the read-write and read-only SQLAlchemy units of work.
"""

from __future__ import annotations

import pytest
from readlog.models import User
from readlog.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from readlog.uow import SQLAlchemyUnitOfWork as RWuow
from sqlalchemy import text

from tests.factories.user import UserFactory


class TestSQLAlchemyUnitOfWorkWriter:
    def test_commits_on_success(self, db, session):
        """
        GIVEN a writer UoW
        WHEN a user is added and the block exits cleanly
        THEN the row is visible afterwards.
        """
        initial = db.session.query(User).count()

        with RWuow() as uow:
            uow.users.add(UserFactory.build())

        assert db.session.query(User).count() == initial + 1

    def test_rolls_back_on_exception(self, db, session):
        initial = db.session.query(User).count()

        with pytest.raises(RuntimeError), RWuow() as uow:
            uow.users.add(UserFactory.build())
            raise RuntimeError("boom")

        assert db.session.query(User).count() == initial

    def test_repositories_share_the_session(self, session):
        with RWuow() as uow:
            assert uow.users.session is uow.session
            assert uow.refresh_tokens.session is uow.session
            assert uow.roles.session is uow.session


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_allows_reads(self, session):
        with RWuow() as uow:
            uow.users.add(UserFactory.build(email="reader@example.com"))

        with ROuow() as uow:
            assert uow.users.get_by_email("reader@example.com") is not None

    def test_disallows_commit(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()


class TestReadOnlyGuards:
    """Write guards; SQLite cannot enforce them against the shared test connection."""

    @pytest.fixture(autouse=True)
    def _skip_if_sqlite(self, db):
        if db.engine.url.get_backend_name() == "sqlite":
            pytest.skip("Read-only write guards not exercised on SQLite")

    def test_blocks_orm_flush_writes(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            uow.session.add(UserFactory.build())
            uow.session.flush()

    def test_blocks_core_dml(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="SQL statement blocked"):
            uow.session.execute(
                text("DELETE FROM refresh_tokens WHERE token = :t"), {"t": "x"}
            )

"""Factory Boy helpers wired to the transactional SQLAlchemy session."""

from __future__ import annotations

import factory

from readlog.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher

# Cheap method so factories do not dominate test runtime
TEST_HASHER = WerkzeugPasswordHasher(method="pbkdf2:sha256:1000")
DEFAULT_PASSWORD = "Passw0rd!"


class SQLAlchemySession:
    """Store the session provided by the pytest fixture layer."""

    _session = None

    @classmethod
    def set(cls, session):
        """Register the SQLAlchemy session used to persist factory objects."""
        cls._session = session

    @classmethod
    def get(cls):
        """Return the registered SQLAlchemy session.

        Raises
        ------
        RuntimeError
            If factories are used without the ``session`` fixture wiring.
        """
        if cls._session is None:
            raise RuntimeError("Factories session not set. Did you pass the 'session' fixture?")
        return cls._session


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base class configuring Factory Boy for the transactional session."""

    class Meta:
        abstract = True
        # A callable keeps Factory Boy lazy and reuses the scoped session.
        sqlalchemy_session_factory = SQLAlchemySession.get
        sqlalchemy_session_persistence = "flush"

    @classmethod
    def _after_postgeneration(cls, instance, create, results=None):
        """Flush changes made by post-generation hooks (e.g. password hashing)."""
        if create and results:
            SQLAlchemySession.get().flush()

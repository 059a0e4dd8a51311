"""User and role repositories."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from readlog.models.user import Role, User
from readlog.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Lookups normalise their input the same way the model validators
    normalise stored values, so callers can pass raw identifiers.
    """

    model = User

    def _filterable_fields(self):
        return {
            "email": User.email,
            "normalized_username": User.normalized_username,
        }

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.strip().lower())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_by_username(self, username: str) -> User | None:
        """Fetch a user by username (case-insensitive).

        :param username: Username as typed by the caller.
        :type username: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.normalized_username == username.strip().lower())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        return self.exists(email=email.strip().lower())

    def exists_by_username(self, username: str) -> bool:
        return self.exists(normalized_username=username.strip().lower())


class RoleRepository(BaseRepository[Role]):
    """Persistence-only repository for :class:`Role`."""

    model = Role

    def _filterable_fields(self):
        return {"name": Role.name}

    def get_by_name(self, name: str) -> Role | None:
        return self.find_one(name=name)

"""Factory Boy definition for :class:`readlog.models.refresh_token.RefreshToken`."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta

import factory
from readlog.models.refresh_token import RefreshToken

from tests.factories import BaseFactory
from tests.factories.user import UserFactory


class RefreshTokenFactory(BaseFactory):
    """
    Build persisted refresh tokens, active by default.

    Pass ``user=<User>`` to reuse an owner, or ``user_id=`` directly for a
    token whose owner does not exist.
    """

    class Meta:
        model = RefreshToken
        exclude = ("user",)

    user = factory.SubFactory(UserFactory)
    user_id = factory.LazyAttribute(lambda o: o.user.id)
    token = factory.LazyFunction(lambda: secrets.token_urlsafe(48))
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    expires_at = factory.LazyAttribute(lambda o: o.created_at + timedelta(days=7))
    revoked = False
    revoked_at = None

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .credential_store import UserSnapshot


@dataclass(frozen=True, slots=True)
class IssuedAccessToken:
    """
    Signed access token plus the metadata callers need without decoding it.

    :ivar token: Compact serialized JWT.
    :ivar expires_at: Expiry instant (UTC), equal to the ``exp`` claim.
    :ivar jti: Per-issuance identifier embedded in the token.
    """

    token: str
    expires_at: datetime
    jti: str


class AccessTokenIssuer(Protocol):
    """Port for signing and verifying access tokens."""

    def issue(
        self, user: UserSnapshot, roles: Sequence[str], *, now: datetime
    ) -> IssuedAccessToken: ...

    def decode(self, token: str) -> dict[str, Any]: ...

from __future__ import annotations

import base64
import logging
import secrets
import uuid
from collections.abc import Sequence

from readlog.services._shared.base import BaseService, Clock, ServiceContext
from readlog.services._shared.errors import ConflictError, ValidationError
from readlog.services._shared.ports import (
    AccessTokenIssuer,
    CredentialStore,
    PasswordHasher,
    RefreshTokenStore,
    RefreshTokenView,
    RotationResult,
    UserSnapshot,
)
from readlog.services.auth.dto import (
    AuthResult,
    AuthSettings,
    ErrorKind,
    LoginIn,
    RefreshIn,
    RegisterIn,
    RevokeIn,
)

log = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token."
USER_NOT_FOUND = "User not found."


def new_refresh_token_value(num_bytes: int) -> str:
    """Return ``num_bytes`` of CSPRNG output, base64-encoded."""
    return base64.b64encode(secrets.token_bytes(num_bytes)).decode("ascii")


class AuthService(BaseService):
    """
    Authentication lifecycle orchestrator (register / login / refresh / revoke).

    Expected failures never raise: they come back as ``AuthResult.failure``
    with an :class:`ErrorKind`. Anything unexpected (store down, bad signing
    configuration) propagates to the caller.

    Parameters
    ----------
    credential_store : CredentialStore
        Identity store used for account creation, lookups and password checks.
    refresh_store : RefreshTokenStore
        Persistence for refresh tokens; owns atomic rotation.
    token_issuer : AccessTokenIssuer
        Signs access tokens.
    settings : AuthSettings
        Lifetimes and refresh-token entropy.
    password_hasher : PasswordHasher | None
        When given, failed lookups on login verify against a dummy hash so an
        unknown identifier costs as much as a wrong password.
    clock : Callable[[], datetime] | None
        Source of the current UTC instant.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStore,
        refresh_store: RefreshTokenStore,
        token_issuer: AccessTokenIssuer,
        settings: AuthSettings,
        password_hasher: PasswordHasher | None = None,
        ctx: ServiceContext | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(ctx=ctx, clock=clock)
        self.credentials = credential_store
        self.refresh_store = refresh_store
        self.tokens = token_issuer
        self.settings = settings
        self._hasher = password_hasher
        self._dummy_hash: str | None = None

    # ------------------------------------------------------------------ #
    # Register
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> AuthResult:
        """
        Create an account and open its first session.

        If the session cannot be opened the account is deleted again and the
        error propagates, so a registration is never half applied.

        :param dto: Registration input.
        :returns: Success with a token pair, or a VALIDATION / CONFLICT failure.
        """
        try:
            user = self.credentials.create_account(
                email=dto.email,
                username=dto.username,
                password=dto.password,
                first_name=dto.first_name,
                last_name=dto.last_name,
            )
        except ValidationError as exc:
            log.info("Registration rejected", extra={"event": "auth.register.invalid"})
            return AuthResult.failure(ErrorKind.VALIDATION, exc.messages)
        except ConflictError as exc:
            log.info("Registration conflict", extra={"event": "auth.register.conflict"})
            return AuthResult.failure(ErrorKind.CONFLICT, exc.detail)

        try:
            result = self._issue_session(user)
        except Exception:
            # No account survives without its first session.
            self.credentials.delete_account(user.id)
            raise
        log.info(
            "User registered",
            extra={"event": "auth.register.succeeded", "user_id": str(user.id)},
        )
        return result

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> AuthResult:
        """
        Authenticate by email (first) or username and open a session.

        Unknown identifier and wrong password return the same failure.
        """
        identifier = (dto.email_or_username or "").strip()
        user = None
        if identifier:
            user = self.credentials.find_by_email(identifier) or self.credentials.find_by_username(
                identifier
            )

        if user is None:
            self._burn_password_check(dto.password)
            return self._login_failed()
        if not self.credentials.verify_password(user, dto.password):
            return self._login_failed()

        result = self._issue_session(user)
        log.info("Login succeeded", extra={"event": "auth.login.succeeded", "user_id": str(user.id)})
        return result

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh_token(self, dto: RefreshIn) -> AuthResult:
        """
        Redeem a refresh token for a new pair, revoking the presented one.

        Not found, expired and revoked all yield the same UNAUTHORIZED
        failure. Of concurrent redemptions of one value, only the caller whose
        rotation wins in the store succeeds.
        """
        now = self.now_utc()
        stored = self.refresh_store.get(dto.refresh_token) if dto.refresh_token else None
        if stored is None or not stored.is_active(now):
            return self._refresh_rejected("inactive")

        user = self.credentials.find_by_id(stored.user_id)
        if user is None:
            log.warning(
                "Refresh token owner missing",
                extra={"event": "auth.refresh.rejected", "user_id": str(stored.user_id)},
            )
            return AuthResult.failure(ErrorKind.UNAUTHORIZED, USER_NOT_FOUND)

        # Sign before rotating so a signing failure leaves the old token usable.
        access = self.tokens.issue(user, self.credentials.get_roles(user), now=now)
        new_value = new_refresh_token_value(self.settings.refresh_token_bytes)
        outcome = self.refresh_store.rotate(
            old_token=dto.refresh_token,
            new_token=new_value,
            now=now,
            new_expires_at=now + self.settings.refresh_token_lifetime,
        )
        if outcome is not RotationResult.OK:
            return self._refresh_rejected(outcome.name.lower())

        log.info("Refresh token rotated", extra={"event": "auth.refresh.rotated", "user_id": str(user.id)})
        return AuthResult.success(access.token, new_value, access.expires_at)

    # ------------------------------------------------------------------ #
    # Revocation
    # ------------------------------------------------------------------ #

    def revoke_token(self, dto: RevokeIn) -> bool:
        """
        Revoke one refresh token (logout).

        An expired but unrevoked token is still revoked and reported as
        ``True`` so the audit trail records the explicit logout.

        :returns: ``False`` if the token is unknown or already revoked.
        """
        if not dto.refresh_token:
            return False
        revoked = self.refresh_store.revoke(dto.refresh_token, now=self.now_utc())
        if revoked:
            log.info("Refresh token revoked", extra={"event": "auth.revoke.succeeded"})
        return revoked

    def revoke_all_sessions(self, user_id: uuid.UUID) -> int:
        """Revoke every outstanding refresh token of ``user_id``; return the count."""
        count = self.refresh_store.revoke_all_for_user(user_id, now=self.now_utc())
        log.info(
            "All sessions revoked",
            extra={"event": "auth.revoke_all", "user_id": str(user_id), "count": count},
        )
        return count

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def list_active_sessions(self, user_id: uuid.UUID) -> Sequence[RefreshTokenView]:
        return self.refresh_store.list_active_for_user(user_id, now=self.now_utc())

    def whoami(self, user_id: uuid.UUID) -> UserSnapshot | None:
        return self.credentials.find_by_id(user_id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _issue_session(self, user: UserSnapshot) -> AuthResult:
        """Sign an access token and persist a brand-new refresh token for ``user``."""
        now = self.now_utc()
        access = self.tokens.issue(user, self.credentials.get_roles(user), now=now)
        refresh_value = new_refresh_token_value(self.settings.refresh_token_bytes)
        self.refresh_store.add(
            token=refresh_value,
            user_id=user.id,
            created_at=now,
            expires_at=now + self.settings.refresh_token_lifetime,
        )
        return AuthResult.success(access.token, refresh_value, access.expires_at)

    def _burn_password_check(self, password: str) -> None:
        if self._hasher is None:
            return
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(secrets.token_urlsafe(16))
        self._hasher.verify(self._dummy_hash, password or "")

    def _login_failed(self) -> AuthResult:
        log.warning("Login failed", extra={"event": "auth.login.failed"})
        return AuthResult.failure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

    def _refresh_rejected(self, reason: str) -> AuthResult:
        log.warning(
            "Refresh rejected: %s", reason, extra={"event": "auth.refresh.rejected"}
        )
        return AuthResult.failure(ErrorKind.UNAUTHORIZED, INVALID_REFRESH_TOKEN)

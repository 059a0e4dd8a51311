"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    SessionSchema,
    TokenResponseSchema,
    WhoAmISchema,
)

__all__ = [
    "LoginSchema",
    "RefreshTokenSchema",
    "RegisterSchema",
    "SessionSchema",
    "TokenResponseSchema",
    "WhoAmISchema",
]

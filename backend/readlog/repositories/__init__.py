"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from readlog.repositories.base import BaseRepository
from readlog.repositories.refresh_token import RefreshTokenRepository
from readlog.repositories.user import RoleRepository, UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "RoleRepository",
    "UserRepository",
]

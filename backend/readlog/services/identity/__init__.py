"""Credential store over the users and roles tables."""

from .service import IdentityService

__all__ = ["IdentityService"]

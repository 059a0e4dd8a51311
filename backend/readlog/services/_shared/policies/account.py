"""Format rules for new account identifiers."""

from __future__ import annotations

from marshmallow import ValidationError as MarshmallowValidationError
from marshmallow import validate

USERNAME_MAX_LENGTH = 50

_email = validate.Email()


def identifier_violations(email: str, username: str) -> list[str]:
    """Return one message per malformed identifier (empty when both are fine)."""
    errors: list[str] = []
    try:
        _email((email or "").strip())
    except MarshmallowValidationError:
        errors.append(f"Email '{email}' is invalid.")
    name = (username or "").strip()
    if not name:
        errors.append("Username is required.")
    elif len(name) > USERNAME_MAX_LENGTH or any(c.isspace() for c in name):
        errors.append(f"Username '{username}' is invalid, can only contain letters, digits or symbols.")
    return errors

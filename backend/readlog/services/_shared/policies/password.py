"""Password strength policy applied at account creation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PasswordPolicy:
    """
    Minimum-strength rules for new passwords.

    :param min_length: Minimum number of characters.
    :param require_digit: At least one ``0-9``.
    :param require_lowercase: At least one lower-case letter.
    :param require_uppercase: At least one upper-case letter.
    :param require_non_alphanumeric: At least one character that is neither
        a letter nor a digit.
    """

    min_length: int = 8
    require_digit: bool = True
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_non_alphanumeric: bool = False

    def __post_init__(self) -> None:
        if self.min_length < 1:
            raise ValueError("PASSWORD_MIN_LENGTH must be at least 1.")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> PasswordPolicy:
        return cls(
            min_length=int(config.get("PASSWORD_MIN_LENGTH", 8)),
            require_digit=bool(config.get("PASSWORD_REQUIRE_DIGIT", True)),
            require_lowercase=bool(config.get("PASSWORD_REQUIRE_LOWERCASE", True)),
            require_uppercase=bool(config.get("PASSWORD_REQUIRE_UPPERCASE", True)),
            require_non_alphanumeric=bool(config.get("PASSWORD_REQUIRE_NON_ALPHANUMERIC", False)),
        )

    def violations(self, password: str) -> list[str]:
        """Return one message per rule ``password`` breaks (empty when it passes)."""
        errors: list[str] = []
        if len(password) < self.min_length:
            errors.append(f"Passwords must be at least {self.min_length} characters.")
        if self.require_digit and not any(c.isdigit() for c in password):
            errors.append("Passwords must have at least one digit ('0'-'9').")
        if self.require_lowercase and not any(c.islower() for c in password):
            errors.append("Passwords must have at least one lowercase ('a'-'z').")
        if self.require_uppercase and not any(c.isupper() for c in password):
            errors.append("Passwords must have at least one uppercase ('A'-'Z').")
        if self.require_non_alphanumeric and password.isalnum():
            errors.append("Passwords must have at least one non alphanumeric character.")
        return errors

from .account import identifier_violations
from .password import PasswordPolicy

__all__ = ["PasswordPolicy", "identifier_violations"]

from readlog.models.refresh_token import RefreshToken
from readlog.models.user import Role, User, user_roles

__all__ = [
    "RefreshToken",
    "Role",
    "User",
    "user_roles",
]

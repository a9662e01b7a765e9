from .user import ADMIN_ROLES, User, UserRole

__all__ = [
    "ADMIN_ROLES",
    "User",
    "UserRole",
]

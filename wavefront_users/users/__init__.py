from wavefront_users.users.models import NewUserRequest, Permission, User, UserGroup
from wavefront_users.users.service import Users


__all__ = [
    "NewUserRequest",
    "Permission",
    "User",
    "UserGroup",
    "Users",
]

from wavefront_users.errors import (
    DecodeError,
    NotFound,
    ServerError,
    TransportError,
    ValidationError,
    WavefrontError,
)
from wavefront_users.ext.wavefront_api import WavefrontClient, create_client
from wavefront_users.search import MatchingMethod, SearchCondition
from wavefront_users.users import NewUserRequest, Permission, User, UserGroup, Users


__all__ = [
    "DecodeError",
    "MatchingMethod",
    "NewUserRequest",
    "NotFound",
    "Permission",
    "SearchCondition",
    "ServerError",
    "TransportError",
    "User",
    "UserGroup",
    "Users",
    "ValidationError",
    "WavefrontClient",
    "WavefrontError",
    "create_client",
]

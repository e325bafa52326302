"""Security module."""

from .dependencies import basic_authentication, bearer_authentication, require_role
from .exceptions import (
    AuthenticationError,
    BadCredentialsError,
    UsernameNotFoundException,
)
from .jwt_util import JwtUtil
from .passwords import PasswordEncoder
from .properties import AdminUserProperties, JwtProperties, SecurityUserProperties
from .user_service import (
    IUserService,
    InMemoryUserService,
    StorageUserService,
    authenticate,
)

__all__ = [
    "AdminUserProperties",
    "AuthenticationError",
    "BadCredentialsError",
    "IUserService",
    "InMemoryUserService",
    "JwtProperties",
    "JwtUtil",
    "PasswordEncoder",
    "SecurityUserProperties",
    "StorageUserService",
    "UsernameNotFoundException",
    "authenticate",
    "basic_authentication",
    "bearer_authentication",
    "require_role",
]

"""User lookup contract with in-memory and storage-backed implementations."""

from typing import Callable, Protocol

from ..logging_config import get_logger
from ..models import UserDetails
from ..storage import IStorage
from .exceptions import BadCredentialsError, UsernameNotFoundException
from .passwords import PasswordEncoder

logger = get_logger(__name__)


class IUserService(Protocol):
    """Loads users for authentication."""

    async def load_user_by_username(self, username: str) -> UserDetails:
        """Return the user or raise UsernameNotFoundException."""
        ...


class InMemoryUserService:
    """Users kept in a dict keyed by lower-cased username."""

    def __init__(self, users: list[UserDetails] | None = None):
        self._users: dict[str, UserDetails] = {}
        for user in users or []:
            self.create_user(user)

    def create_user(self, user: UserDetails) -> None:
        key = user.username.lower()
        if key in self._users:
            raise ValueError(f"user '{user.username}' already exists")
        self._users[key] = user

    def user_exists(self, username: str) -> bool:
        return username.lower() in self._users

    async def load_user_by_username(self, username: str) -> UserDetails:
        user = self._users.get(username.lower())
        if user is None:
            raise UsernameNotFoundException(f"Not Found user by userName :{username}")
        return user


class StorageUserService:
    """Users and their roles read from the ``users`` and ``roles`` tables.

    ``get_storage`` is called on every lookup, so the service can be built
    before the storage is opened.
    """

    def __init__(self, get_storage: Callable[[], IStorage]):
        self._get_storage = get_storage

    async def create_user(self, user: UserDetails) -> None:
        if await self.user_exists(user.username):
            raise ValueError(f"user '{user.username}' already exists")
        await self._get_storage().save_user(user)
        logger.info("Created user %s with roles %s", user.username, user.roles)

    async def user_exists(self, username: str) -> bool:
        return await self._get_storage().get_user(username) is not None

    async def load_user_by_username(self, username: str) -> UserDetails:
        user = await self._get_storage().get_user(username)
        if user is None:
            raise UsernameNotFoundException(f"Not Found user by userName :{username}")
        return user


async def authenticate(
    user_service: IUserService,
    encoder: PasswordEncoder,
    username: str,
    password: str,
) -> UserDetails:
    """Check credentials, hiding unknown users behind BadCredentialsError."""
    try:
        user = await user_service.load_user_by_username(username)
    except UsernameNotFoundException:
        logger.debug("Failed to find user '%s'", username)
        raise BadCredentialsError("Bad credentials")

    if not user.enabled:
        raise BadCredentialsError("User is disabled")
    if not encoder.matches(password, user.password):
        logger.debug("Failed to authenticate since password does not match stored value")
        raise BadCredentialsError("Bad credentials")
    return user

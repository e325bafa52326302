"""FastAPI dependencies enforcing HTTP Basic and Bearer authentication."""

from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)

from ..logging_config import get_logger
from ..models import UserDetails
from .exceptions import AuthenticationError
from .jwt_util import JwtUtil
from .passwords import PasswordEncoder
from .user_service import IUserService, authenticate

logger = get_logger(__name__)

basic_scheme = HTTPBasic(auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(challenge: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": challenge},
    )


def basic_authentication(
    user_service: IUserService, encoder: PasswordEncoder
) -> Callable[..., UserDetails]:
    """Dependency resolving the user from an HTTP Basic header."""

    async def dependency(
        credentials: HTTPBasicCredentials | None = Depends(basic_scheme),
    ) -> UserDetails:
        if credentials is None:
            raise _unauthorized('Basic realm="Realm"')
        try:
            return await authenticate(user_service, encoder, credentials.username, credentials.password)
        except AuthenticationError as e:
            logger.info("Basic authentication failed for '%s': %s", credentials.username, e)
            raise _unauthorized('Basic realm="Realm"')

    return dependency


def bearer_authentication(jwt_util: JwtUtil) -> Callable[..., UserDetails]:
    """Dependency resolving the user from a ``Bearer <jwt>`` header."""

    def dependency(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> UserDetails:
        if credentials is None or not credentials.credentials.strip():
            raise _unauthorized("Bearer")
        user = jwt_util.verify_token(credentials.credentials)
        if user is None:
            raise _unauthorized('Bearer error="invalid_token"')
        logger.info("User '%s' authenticated by JWT", user.username)
        return user

    return dependency


def require_role(
    authentication: Callable[..., UserDetails], *roles: str
) -> Callable[..., UserDetails]:
    """Dependency passing users holding any of ``roles``, 403 for the rest."""

    def dependency(user: UserDetails = Depends(authentication)) -> UserDetails:
        if not any(role in user.roles for role in roles):
            logger.info("User '%s' with roles %s denied, needs one of %s", user.username, user.roles, list(roles))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return dependency

"""JWT creation and verification."""

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from ..logging_config import get_logger
from ..models import UserDetails
from .properties import JwtProperties

logger = get_logger(__name__)

ALGORITHM = "HS512"
CLAIM_USER_NAME = "username"
CLAIM_USER_ROLES = "roles"


class JwtUtil:
    """Signs tokens carrying the username and roles; verifies them back."""

    def __init__(self, properties: JwtProperties):
        self._properties = properties

    @property
    def valid_minutes(self) -> int:
        return self._properties.valid_minutes

    def create_token(self, username: str, roles: list[str]) -> str:
        if not username or not username.strip():
            raise ValueError("username must not empty")
        if not roles:
            raise ValueError("authorities must not empty")

        now = datetime.now(timezone.utc)
        claims = {
            "iss": self._properties.issuer,
            "sub": self._properties.subject,
            "iat": now,
            "exp": now + timedelta(minutes=self._properties.valid_minutes),
            CLAIM_USER_NAME: username,
            CLAIM_USER_ROLES: list(roles),
        }
        return jwt.encode(claims, self._properties.secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> UserDetails | None:
        """Return the user the token was issued for, or None when invalid."""
        if not token or not token.strip():
            raise ValueError("JWT token string must not null")
        try:
            claims = jwt.decode(
                token,
                self._properties.secret,
                algorithms=[ALGORITHM],
                issuer=self._properties.issuer,
                subject=self._properties.subject,
            )
        except ExpiredSignatureError:
            logger.error("JWT expired")
            return None
        except JWTError:
            logger.exception("JWT invalid")
            return None

        if CLAIM_USER_NAME not in claims or CLAIM_USER_ROLES not in claims:
            logger.error("JWT carries no user information")
            return None

        return UserDetails(
            username=claims[CLAIM_USER_NAME],
            password="",
            roles=list(claims[CLAIM_USER_ROLES]),
        )

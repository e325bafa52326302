"""Security configuration holders."""

from typing import ClassVar

from pydantic import Field, field_validator

from ..environment import ConfigurationProperties


class SecurityUserProperties(ConfigurationProperties):
    """Default user, prefix ``spring.security.user``. No password means generate one."""

    prefix: ClassVar[str] = "spring.security.user"

    name: str = "user"
    password: str | None = None
    roles: list[str] = Field(default_factory=list)

    @field_validator("roles", mode="before")
    @classmethod
    def split_roles(cls, value):
        if isinstance(value, str):
            return [r.strip() for r in value.split(",") if r.strip()]
        return value


class JwtProperties(ConfigurationProperties):
    """JWT signing settings, prefix ``jwt``."""

    prefix: ClassVar[str] = "jwt"

    issuer: str = "cloudsamples"
    subject: str = "Auth"
    secret: str = "DefaultSecretKey"
    valid_minutes: int = Field(default=10, gt=0)

    @field_validator("issuer", "subject", "secret")
    @classmethod
    def not_blank(cls, value: str, info):
        if not value or not value.strip():
            raise ValueError(f"jwt.{info.field_name} must not be empty")
        return value


class AdminUserProperties(SecurityUserProperties):
    """Administrator seeded into the JWT sample's user store, prefix ``spring.security.admin``."""

    prefix: ClassVar[str] = "spring.security.admin"

    name: str = "admin"
    roles: list[str] = Field(default_factory=lambda: ["USER", "ADMIN"])

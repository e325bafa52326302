"""Security-related data models."""

from dataclasses import dataclass, field


@dataclass
class UserDetails:
    """Core user information used for authentication."""

    username: str
    password: str  # encoded, e.g. "{noop}secret" or a passlib hash
    roles: list[str] = field(default_factory=list)
    enabled: bool = True

    @property
    def authorities(self) -> list[str]:
        return [f"ROLE_{role}" for role in self.roles]

"""Authentication failures."""


class AuthenticationError(Exception):
    """Base class for authentication failures."""


class UsernameNotFoundException(AuthenticationError):
    """Raised by a user service that has no user with the given name."""


class BadCredentialsError(AuthenticationError):
    """Raised when the supplied credentials do not authenticate."""

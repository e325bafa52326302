"""Tests for password encoding, user lookup and JWT handling."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from pydantic import ValidationError

from cloudsamples.environment import Environment
from cloudsamples.models import UserDetails
from cloudsamples.security import (
    BadCredentialsError,
    InMemoryUserService,
    JwtProperties,
    JwtUtil,
    PasswordEncoder,
    SecurityUserProperties,
    StorageUserService,
    UsernameNotFoundException,
    authenticate,
)


@pytest.fixture
def encoder():
    return PasswordEncoder()


@pytest.fixture
def jwt_util():
    return JwtUtil(JwtProperties(secret="test-secret", valid_minutes=5))


class TestPasswordEncoder:
    """Tests for PasswordEncoder."""

    def test_encode_and_match(self, encoder):
        """Test pbkdf2 hashes."""
        encoded = encoder.encode("secret")

        assert encoded.startswith("{pbkdf2}")
        assert "secret" not in encoded
        assert encoder.matches("secret", encoded)
        assert not encoder.matches("wrong", encoded)

    def test_noop_passwords(self, encoder):
        """Test ``{noop}`` plain passwords."""
        assert encoder.matches("secret", "{noop}secret")
        assert not encoder.matches("Secret", "{noop}secret")

    def test_missing_or_unprefixed(self, encoder):
        """Test that passwords without an id never match."""
        assert not encoder.matches("secret", None)
        assert not encoder.matches("secret", "secret")

    def test_unknown_id(self, encoder):
        """Test unknown encoding ids."""
        with pytest.raises(ValueError):
            encoder.matches("secret", "{md4}abc")


class TestUserService:
    """Tests for InMemoryUserService and authenticate()."""

    def make_service(self, encoder) -> InMemoryUserService:
        return InMemoryUserService(
            [
                UserDetails("alice", encoder.encode("pw"), ["USER"]),
                UserDetails("bob", "{noop}pw", ["ADMIN"], enabled=False),
            ]
        )

    async def test_load_user(self, encoder):
        """Test lookup is case-insensitive."""
        service = self.make_service(encoder)
        assert (await service.load_user_by_username("Alice")).username == "alice"
        assert service.user_exists("ALICE")

    async def test_unknown_user(self, encoder):
        """Test UsernameNotFoundException."""
        service = self.make_service(encoder)
        with pytest.raises(UsernameNotFoundException, match="Not Found user by userName :carol"):
            await service.load_user_by_username("carol")

    def test_duplicate_user(self, encoder):
        """Test that users are unique."""
        service = self.make_service(encoder)
        with pytest.raises(ValueError):
            service.create_user(UserDetails("ALICE", "{noop}x"))

    async def test_authenticate(self, encoder):
        """Test good and bad credentials."""
        service = self.make_service(encoder)

        assert (await authenticate(service, encoder, "alice", "pw")).roles == ["USER"]
        with pytest.raises(BadCredentialsError):
            await authenticate(service, encoder, "alice", "nope")
        with pytest.raises(BadCredentialsError):
            await authenticate(service, encoder, "carol", "pw")

    async def test_disabled_user(self, encoder):
        """Test that disabled users cannot log in."""
        service = self.make_service(encoder)
        with pytest.raises(BadCredentialsError):
            await authenticate(service, encoder, "bob", "pw")

    def test_authorities(self):
        """Test ROLE_ prefix."""
        assert UserDetails("a", "", ["USER", "ADMIN"]).authorities == ["ROLE_USER", "ROLE_ADMIN"]


class TestStorageUserService:
    """Tests for users and roles kept in storage."""

    async def test_create_and_load(self, storage, encoder):
        """Test that users come back with their roles."""
        service = StorageUserService(lambda: storage)
        await service.create_user(UserDetails("admin", encoder.encode("pw"), ["USER", "ADMIN"]))

        user = await service.load_user_by_username("ADMIN")

        assert user.username == "admin"
        assert user.roles == ["USER", "ADMIN"]
        assert user.enabled is True
        assert (await authenticate(service, encoder, "admin", "pw")).authorities == [
            "ROLE_USER",
            "ROLE_ADMIN",
        ]

    async def test_roles_are_shared(self, storage):
        """Test that two users reuse one role row."""
        service = StorageUserService(lambda: storage)
        await service.create_user(UserDetails("alice", "{noop}a", ["USER"]))
        await service.create_user(UserDetails("bob", "{noop}b", ["USER", "ADMIN"]))

        assert (await service.load_user_by_username("alice")).roles == ["USER"]
        assert (await service.load_user_by_username("bob")).roles == ["USER", "ADMIN"]

    async def test_unknown_and_duplicate(self, storage):
        """Test missing users and unique names."""
        service = StorageUserService(lambda: storage)
        await service.create_user(UserDetails("alice", "{noop}a", ["USER"]))

        with pytest.raises(UsernameNotFoundException):
            await service.load_user_by_username("carol")
        with pytest.raises(ValueError):
            await service.create_user(UserDetails("Alice", "{noop}x", []))
        assert await service.user_exists("carol") is False

    async def test_disabled_user(self, storage):
        """Test that the enabled flag is stored."""
        service = StorageUserService(lambda: storage)
        await service.create_user(UserDetails("bob", "{noop}pw", ["USER"], enabled=False))

        with pytest.raises(BadCredentialsError):
            await authenticate(service, PasswordEncoder(), "bob", "pw")


class TestSecurityProperties:
    """Tests for security property holders."""

    def test_user_defaults(self):
        """Test default user name and missing password."""
        properties = SecurityUserProperties.bind(Environment(environ={}))
        assert properties.name == "user"
        assert properties.password is None
        assert properties.roles == []

    def test_user_roles_from_string(self):
        """Test comma-separated roles."""
        env = Environment(
            defaults={"spring.security.user.roles": "USER, ADMIN"},
            environ={},
        )
        assert SecurityUserProperties.bind(env).roles == ["USER", "ADMIN"]

    def test_jwt_defaults(self):
        """Test JwtProperties defaults."""
        properties = JwtProperties.bind(Environment(environ={}))
        assert properties.issuer == "cloudsamples"
        assert properties.subject == "Auth"
        assert properties.valid_minutes == 10

    def test_jwt_validation(self):
        """Test non-blank strings and positive validity."""
        with pytest.raises(ValidationError):
            JwtProperties(secret=" ")
        with pytest.raises(ValidationError):
            JwtProperties(valid_minutes=0)

    def test_jwt_bound_from_environment_variable(self):
        """Test JWT_VALID_MINUTES."""
        env = Environment(environ={"JWT_VALID_MINUTES": "30"})
        assert JwtProperties.bind(env).valid_minutes == 30


class TestJwtUtil:
    """Tests for JwtUtil."""

    def test_round_trip(self, jwt_util):
        """Test that a token verifies back to its user."""
        token = jwt_util.create_token("alice", ["USER"])

        user = jwt_util.verify_token(token)

        assert user is not None
        assert user.username == "alice"
        assert user.authorities == ["ROLE_USER"]

    def test_claims(self, jwt_util):
        """Test issuer, subject and HS512."""
        token = jwt_util.create_token("alice", ["USER"])

        assert jwt.get_unverified_header(token)["alg"] == "HS512"
        claims = jwt.get_unverified_claims(token)
        assert claims["iss"] == "cloudsamples"
        assert claims["sub"] == "Auth"
        assert claims["exp"] - claims["iat"] == 5 * 60

    def test_create_requires_username_and_roles(self, jwt_util):
        """Test argument checks."""
        with pytest.raises(ValueError):
            jwt_util.create_token(" ", ["USER"])
        with pytest.raises(ValueError):
            jwt_util.create_token("alice", [])

    def test_wrong_secret(self, jwt_util):
        """Test tokens signed with another secret."""
        other = JwtUtil(JwtProperties(secret="another-secret"))
        assert jwt_util.verify_token(other.create_token("alice", ["USER"])) is None

    def test_wrong_issuer(self, jwt_util):
        """Test tokens from another issuer."""
        other = JwtUtil(JwtProperties(secret="test-secret", issuer="someone-else"))
        assert jwt_util.verify_token(other.create_token("alice", ["USER"])) is None

    def test_expired(self, jwt_util):
        """Test expired tokens."""
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {
                "iss": "cloudsamples",
                "sub": "Auth",
                "iat": past,
                "exp": past + timedelta(minutes=5),
                "username": "alice",
                "roles": ["USER"],
            },
            "test-secret",
            algorithm="HS512",
        )
        assert jwt_util.verify_token(token) is None

    def test_missing_user_claims(self, jwt_util):
        """Test tokens without username and roles."""
        token = jwt.encode(
            {"iss": "cloudsamples", "sub": "Auth"}, "test-secret", algorithm="HS512"
        )
        assert jwt_util.verify_token(token) is None

    def test_blank_token(self, jwt_util):
        """Test blank input."""
        with pytest.raises(ValueError):
            jwt_util.verify_token(" ")

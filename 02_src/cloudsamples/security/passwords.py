"""Password encoding: ``{id}`` prefixed hashes, passlib underneath."""

import hmac

from passlib.context import CryptContext

DEFAULT_ENCODING_ID = "pbkdf2"

_crypt = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class PasswordEncoder:
    """Encodes with ``{pbkdf2}``; also verifies ``{noop}`` plain passwords."""

    def encode(self, raw_password: str) -> str:
        return f"{{{DEFAULT_ENCODING_ID}}}{_crypt.hash(raw_password)}"

    def matches(self, raw_password: str, encoded_password: str | None) -> bool:
        if not encoded_password:
            return False
        if not encoded_password.startswith("{") or "}" not in encoded_password:
            return False
        encoding_id, value = encoded_password[1:].split("}", 1)
        if encoding_id == "noop":
            return hmac.compare_digest(raw_password.encode("utf-8"), value.encode("utf-8"))
        if encoding_id == DEFAULT_ENCODING_ID:
            return _crypt.verify(raw_password, value)
        raise ValueError(f"There is no PasswordEncoder mapped for the id \"{encoding_id}\"")

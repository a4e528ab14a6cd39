"""
Auth - Password Hashing.

bcrypt-based hashing primitive injected into the administrator
creator. Kept behind a small class so tests can lower the cost
factor or substitute a failing hasher.
"""

import bcrypt

from core.constants import MAX_ADMIN_PASSWORD_BYTES

DEFAULT_ROUNDS = 10


class PasswordHashError(Exception):
    """Raised when a password cannot be hashed."""


class PasswordHasher:
    """Hashes and verifies passwords with bcrypt."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """
        Hash ``password``.

        Raises:
            PasswordHashError: empty input or bcrypt rejection
                (e.g. more than 72 bytes)
        """
        if not password:
            raise PasswordHashError("cannot hash an empty password")
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_ADMIN_PASSWORD_BYTES:
            raise PasswordHashError(f"password exceeds bcrypt's {MAX_ADMIN_PASSWORD_BYTES}-byte limit")
        try:
            hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds))
        except ValueError as e:
            raise PasswordHashError(f"bcrypt failed: {e}") from e
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

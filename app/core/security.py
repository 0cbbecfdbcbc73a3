"""
Password hashing.

bcrypt with a module-wide cost factor. Secrets are reduced with SHA-256 before
bcrypt sees them so long passwords are not truncated at 72 bytes.
"""

import base64
import hashlib

import bcrypt

from app.core.errors import HashingError, InvalidHashFormatError

# 2^12 iterations
BCRYPT_ROUNDS = 12


def _prepare(plaintext: str) -> bytes:
    digest = hashlib.sha256(plaintext.encode("utf-8")).digest()
    return base64.b64encode(digest)


class PasswordHasher:
    """Salted one-way hashing and constant-time verification of secrets."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        """
        Hash a plaintext secret.

        Args:
            plaintext: Secret to hash

        Returns:
            bcrypt hash as string

        Raises:
            HashingError: If salt generation or hashing fails
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(_prepare(plaintext), salt)
        except (OSError, ValueError) as exc:
            raise HashingError("failed to hash password") from exc
        return hashed.decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Check a plaintext against a stored hash.

        Returns:
            True if plaintext produced the hash, False otherwise

        Raises:
            InvalidHashFormatError: If the stored hash is malformed
        """
        try:
            return bcrypt.checkpw(_prepare(plaintext), hashed.encode("utf-8"))
        except ValueError as exc:
            raise InvalidHashFormatError("invalid password hash format") from exc


# Default hasher used by the API layer
password_hasher = PasswordHasher()

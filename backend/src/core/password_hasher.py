"""Password hashing using bcrypt."""
import base64
import hashlib
import secrets
from functools import cached_property

import bcrypt


class PasswordHasher:
    """
    Salted, slow, one-way password hashing.

    Examples
    --------
    >>> hasher = PasswordHasher(rounds=4)
    >>> hashed = hasher.hash("my_secure_password")
    >>> hasher.verify("my_secure_password", hashed)
    True
    >>> hasher.verify("wrong_password", hashed)
    False
    """

    def __init__(self, rounds: int = 12) -> None:
        """
        Initialize the hasher.

        Parameters
        ----------
        rounds
            The bcrypt work factor (log2 of iterations).
        """
        self._rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a plaintext password with a fresh random salt."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        hashed = bcrypt.hashpw(self._encode(password), salt)
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if the password matches the hash, False otherwise."""
        try:
            return bcrypt.checkpw(self._encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            # Invalid hash format
            return False

    @cached_property
    def dummy_hash(self) -> str:
        """A hash of a random password, for equal-cost checks against missing accounts."""
        return self.hash(secrets.token_urlsafe(16))

    @staticmethod
    def _encode(password: str) -> bytes:
        # bcrypt ignores input past 72 bytes; a base64 SHA-256 digest is 44 bytes
        # and carries every byte of the password
        return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())

"""Opaque token generation and hashing."""
import hashlib
import secrets


def generate_opaque_token() -> str:
    """
    Generate a random, URL-safe opaque token.

    The token carries no claims; it is only meaningful as a lookup key.
    """
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Hash a token for storage and comparison against stored hashes."""
    return hashlib.sha256(token.encode()).hexdigest()

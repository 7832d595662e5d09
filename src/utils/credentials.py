"""Credential utilities.

This module provides password hashing and verification with bcrypt and the
generation and checking of one-time codes (invite codes and password reset
tokens).
"""

import logging
import secrets
from datetime import datetime
from functools import lru_cache

import bcrypt

from config import BCRYPT_ROUNDS
from core.exceptions import CryptoError, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

# 32 random bytes, url-safe base64 encoded (43 characters). Collisions are
# not checked: two equal codes within one TTL window is a 2**-256 event.
INVITE_CODE_BYTES = 32


def _password_bytes(password: str) -> bytes:
    if not password:
        raise ValidationError("Password cannot be empty")
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password exceeds the maximum length of {BCRYPT_MAX_BYTES} bytes"
        )
    return password_bytes


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password.
        rounds: Bcrypt work factor.

    Returns:
        Hashed password (bcrypt hash string).

    Raises:
        ValidationError: If the password is empty or longer than 72 bytes.
        CryptoError: If bcrypt fails.
    """
    password_bytes = _password_bytes(password)
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        hashed = bcrypt.hashpw(password_bytes, salt)
    except (ValueError, TypeError) as e:
        raise CryptoError(f"Password hashing failed: {e}") from e
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash.

    Args:
        plain_password: Plain text password to verify.
        hashed_password: Bcrypt hash string to verify against.

    Returns:
        True if password matches, False otherwise (including malformed hashes).
    """
    if not plain_password or not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.error("Password verification error: %s", e)
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Hash checked against when there is no real one, so misses cost the same."""
    return hash_password(secrets.token_urlsafe(16))


def generate_invite_code() -> str:
    """Generate a random one-time code for invites and password resets."""
    return secrets.token_urlsafe(INVITE_CODE_BYTES)


def codes_match(expected: str, given: str) -> bool:
    """Constant-time comparison of two codes."""
    if not expected or not given:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


def is_expired(expiry: datetime, now: datetime) -> bool:
    """A code is usable only strictly before its expiry."""
    return now >= expiry

"""
Password hashing and verification.
"""

from functools import lru_cache

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


def _encode(plain_password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return plain_password.encode("utf-8")[:72]


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    return bcrypt.hashpw(_encode(plain_password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash.

    Returns False on mismatch. Raises ValueError if ``hashed`` is not a
    bcrypt hash.
    """
    return bcrypt.checkpw(_encode(plain_password), hashed.encode("utf-8"))


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password("unknown-account-placeholder", rounds)


def verify_dummy_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> bool:
    """Run a full bcrypt check against a placeholder hash and return False.

    Used when no account matches, so a failed login costs the same either way.
    """
    verify_password(plain_password, _dummy_hash(rounds))
    return False

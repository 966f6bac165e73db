"""
Password hashing and validation using argon2id.

Argon2id is memory-hard, so offline brute force against a leaked hash stays
expensive. Cost parameters come from settings and are tunable per deployment;
hashes made with older parameters are upgraded on the next successful login.
"""

from __future__ import annotations

from functools import lru_cache

import argon2

from farmledger.config import get_settings
from farmledger.errors import WeakPassword


@lru_cache
def _get_hasher() -> argon2.PasswordHasher:
    settings = get_settings()
    return argon2.PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
        hash_len=32,
        salt_len=16,
        type=argon2.Type.ID,  # argon2id
    )


def reset_hasher() -> None:
    """Drop the cached hasher so new settings take effect."""
    _get_hasher.cache_clear()


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full encoded hash string."""
    return _get_hasher().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    The comparison inside argon2 is constant-time. Returns False on mismatch
    or a corrupt hash; never raises for either.
    """
    try:
        return _get_hasher().verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """Check if the hash was made with outdated parameters."""
    return _get_hasher().check_needs_rehash(password_hash)


@lru_cache
def dummy_hash() -> str:
    """A throwaway hash verified against when the account does not exist."""
    return hash_password("farmledger-timing-equalizer")


def validate_password_strength(password: str) -> None:
    """
    Validate a password against the configured length bounds.

    Raises WeakPassword if the password is empty, whitespace-only, too short
    or too long (the upper bound stops hashing from being used for DoS).
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise WeakPassword(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise WeakPassword(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise WeakPassword(msg)

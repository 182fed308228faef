"""
Password and PIN hashing with argon2id.

Parents log in with a password; children log in with a 4-digit PIN. Both are
stored as argon2id hashes and never in plaintext.
"""

from __future__ import annotations

import secrets

import argon2

from heroes.config import get_settings
from heroes.errors import DomainValidationError

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

PIN_LENGTH = 4


class PasswordStrengthError(DomainValidationError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if the password matches. Never raises on mismatch."""
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def validate_password_strength(password: str) -> None:
    """
    Validate a parent password.

    Raises PasswordStrengthError unless the password is within the configured
    length bounds and mixes upper case, lower case and digits.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)
    if not any(c.isupper() for c in password):
        msg = "Password must contain at least one uppercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.islower() for c in password):
        msg = "Password must contain at least one lowercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.isdigit() for c in password):
        msg = "Password must contain at least one digit"
        raise PasswordStrengthError(msg)


def generate_pin() -> str:
    """Random 4-digit PIN without a leading zero (1000-9999)."""
    return str(1000 + secrets.randbelow(9000))


def validate_pin(pin: str) -> None:
    if len(pin) != PIN_LENGTH or not pin.isdigit():
        msg = f"PIN must be exactly {PIN_LENGTH} digits"
        raise DomainValidationError(msg)

"""Password hashing and the sign-up password policy."""
from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from secureport.config import settings
from secureport.errors import ValidationError


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using a strong KDF.
    Werkzeug's scrypt is memory-hard and suitable for production.
    """
    check_password_policy(plain_password)
    return generate_password_hash(plain_password, method="scrypt")


def verify_password(password_hash: str, plain_password: str) -> bool:
    """Verify plaintext password against stored hash."""
    if not password_hash or not plain_password:
        return False
    return check_password_hash(password_hash, plain_password)


def check_password_policy(plain_password: str) -> None:
    """
    Raises:
        ValidationError: blank (or whitespace-only) or shorter than
            settings.min_password_length.
    """
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValidationError(
            "Password must not be blank.",
            details=[{"field": "password", "issue": "Password is blank"}],
        )
    if len(plain_password) < settings.min_password_length:
        raise ValidationError(
            f"Password must be at least {settings.min_password_length} characters.",
            details=[{"field": "password", "issue": "Password too short"}],
        )

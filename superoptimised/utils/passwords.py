"""Password hashing utilities using bcrypt."""
from __future__ import annotations

import bcrypt

# bcrypt only considers the first 72 bytes of input
MAX_PASSWORD_BYTES = 72


class PasswordValidationError(ValueError):
    """Raised when a password fails strength validation."""


def validate_password_strength(password: str) -> None:
    """Validate password complexity requirements.

    The policy requires:
    - Minimum length of 8 characters
    - At most 72 bytes once UTF-8 encoded
    - At least one lowercase letter
    - At least one uppercase letter
    - At least one digit

    Raises:
        PasswordValidationError: If any requirement is not met.
    """

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long.")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError("Password must be at most 72 bytes long.")

    if password.lower() == password or password.upper() == password:
        raise PasswordValidationError(
            "Password must include both uppercase and lowercase letters."
        )

    if not any(char.isdigit() for char in password):
        raise PasswordValidationError("Password must include at least one number.")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False

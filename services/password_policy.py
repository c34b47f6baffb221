"""Turns the pure password check into the typed error the API returns."""

from errors import WeakPasswordError
from shared.validators import validate_password


def ensure_strong_password(password: str) -> None:
    """Raise WeakPasswordError listing the unmet requirements of *password*."""
    is_valid, missing = validate_password(password)
    if not is_valid:
        raise WeakPasswordError(
            "Password does not meet requirements", field="password", details=missing
        )

"""
Input validators - framework-agnostic, pure functions.

All validators are stateless and never raise; the service layer decides
which typed error to turn a failed check into.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

import validators as _validators

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?~`"

_SYMBOL_RE = re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")
_PHONE_SEPARATORS_RE = re.compile(r"[\s\-().]")
_PHONE_RE = re.compile(r"^\+?[0-9]{8,15}$")


def normalize_email(email: str) -> str:
    """Lower-case and strip *email*; emails are unique case-insensitively."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address."""
    if not email:
        return False
    return bool(_validators.email(email))


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Check *password* against the account password policy.

    Rules:
    - 8 to 128 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one symbol from ``PASSWORD_SYMBOLS``

    Returns:
        (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []
    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append(f"At least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append(f"Maximum {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")
    if not _SYMBOL_RE.search(password):
        missing.append("At least one special character")

    return not missing, missing


def get_password_requirements() -> List[str]:
    """Get list of all password requirements."""
    return [
        f"At least {PASSWORD_MIN_LENGTH} characters",
        f"Maximum {PASSWORD_MAX_LENGTH} characters",
        "At least one uppercase letter",
        "At least one lowercase letter",
        "At least one number",
        "At least one special character",
    ]


def normalize_phone(phone: str) -> Optional[str]:
    """Return *phone* with separators stripped, or None if it is not a phone number.

    Accepts 8–15 digits with an optional leading ``+`` (E.164 length
    bounds); spaces, dashes, dots and parentheses are ignored.
    """
    if not phone:
        return None
    compact = _PHONE_SEPARATORS_RE.sub("", phone.strip())
    if not _PHONE_RE.match(compact):
        return None
    return compact

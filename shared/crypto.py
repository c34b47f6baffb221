"""
Cryptographic helpers - password hashing and token hashing.

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for the single-use
tokens emailed to users.
"""

from __future__ import annotations

import hashlib

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()

# Verified against when an email is unknown so a failed login costs the same
# whether or not the account exists.
_DUMMY_HASH = _password_hasher.hash("parley-dummy-password")


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    Returns:
        ``True`` if the password matches, ``False`` for a mismatch or an
        unparseable hash.
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def burn_password_check(plain_password: str) -> None:
    """Run a throwaway argon2 verification so timing matches a real check."""
    verify_password(plain_password, _DUMMY_HASH)


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash password-reset and email-verification tokens before they
    are stored so the plaintext is never persisted.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

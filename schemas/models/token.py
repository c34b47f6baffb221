"""
Single-use token sub-document, embedded on the user.

Used for both password reset and email verification. Each purpose has its
own slot on UserDoc, so a user holds at most one live token per purpose;
issuing a new one overwrites the previous one and consuming it clears the
slot. token_hash stores SHA-256(token) - the plaintext only travels by email.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TokenPurpose(str, Enum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


class PendingToken(BaseModel):
    """A hashed, time-boxed token waiting to be consumed."""

    token_hash: str
    expires_at: datetime
    created_at: Optional[datetime] = None

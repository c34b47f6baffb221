"""
User document model.

Maps to the `users` MongoDB collection.

email is stored normalised (stripped, lower-cased) and carries a unique
index, which makes uniqueness case-insensitive. credential_version is
embedded in every session token and bumped on each password change, so
tokens minted before the change stop authenticating.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel
from schemas.models.token import PendingToken, TokenPurpose


class Avatar(BaseModel):
    """Embedded profile picture sub-document."""

    url: str
    public_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    password_hash: str
    user_name: str
    about_me: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[Avatar] = None
    email_verified: bool = False
    password_reset: Optional[PendingToken] = None
    email_verification: Optional[PendingToken] = None
    credential_version: int = 0
    password_changed_at: Optional[datetime] = None
    is_online: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def user_id(self) -> str:
        return str(self.id)

    def pending_token(self, purpose: TokenPurpose) -> Optional[PendingToken]:
        return getattr(self, purpose.value)

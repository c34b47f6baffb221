"""
Response DTOs for authentication and profile endpoints.

UserProfileResponse      - public user shape used in signup/login/me/profile
SignupResponse           - POST /auth/signup  (201)
LoginResponse            - POST /auth/login  (200)
RefreshResponse          - POST /auth/refresh  (200)
LogoutResponse           - POST /auth/logout  (200)
VerifyEmailResponse      - POST /auth/verify-email, /auth/confirm-email  (200)
SendVerificationResponse - POST /auth/send-verification  (200)
ProfileResponse          - POST /auth/add-*  (200)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserProfileResponse(BaseModel):
    """Public view of a user; never carries hashes or pending tokens."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    user_name: str
    email_verified: bool
    about_me: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    is_online: bool = False

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=user.user_id,
            email=user.email,
            user_name=user.user_name,
            email_verified=user.email_verified,
            about_me=user.about_me,
            phone=user.phone,
            avatar_url=user.avatar.url if user.avatar else None,
            is_online=user.is_online,
        )


class SignupResponse(BaseModel):
    """Response body for POST /auth/signup (201)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    user: UserProfileResponse
    requires_verification: bool
    verification_sent: bool


class LoginResponse(BaseModel):
    """Response body for POST /auth/login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    user: UserProfileResponse


class RefreshResponse(BaseModel):
    """Response body for POST /auth/refresh (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str


class LogoutResponse(BaseModel):
    """Response body for POST /auth/logout (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool


class VerifyEmailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    email_verified: bool


class SendVerificationResponse(BaseModel):
    """``verification_sent`` is False when delivery failed; the token stays valid."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    verification_sent: bool
    message: str


class ProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    user: UserProfileResponse

"""
Request DTOs for authentication endpoints.

SignupRequest                 - POST /auth/signup
LoginRequest                  - POST /auth/login
RequestPasswordResetRequest   - POST /auth/request-password-reset
ResetPasswordRequest          - POST /auth/reset-password
ConfirmEmailRequest           - POST /auth/confirm-email

Field-level policy (password strength, email syntax) is enforced by the
services so the error shape stays the same for API and internal callers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class RequestPasswordResetRequest(BaseModel):
    """Request body for POST /auth/request-password-reset."""

    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password.

    ``token`` is the single-use token from the emailed reset link.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: str
    password: str


class ConfirmEmailRequest(BaseModel):
    """Request body for POST /auth/confirm-email."""

    model_config = ConfigDict(populate_by_name=True)

    token: str

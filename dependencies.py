"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services are built once in the app lifespan
and read back from app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, Response

from config import AppSettings
from errors import AuthenticationError, TokenExpiredError
from services.auth_service import AuthService
from services.profile_service import ProfileService
from services.session_manager import SessionManager
from shared.cookies import ACCESS_COOKIE, REFRESH_COOKIE, set_session_cookies
from shared.logging import get_logger

log = get_logger(__name__)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def extract_access_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access_token cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE)


async def get_current_user_id(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    settings: AppSettings = Depends(get_settings),
) -> str:
    """Resolve the authenticated user, refreshing silently when the access token expired.

    A silent refresh rotates both tokens and sets them as cookies on the
    outgoing response. Any other failure is terminal and surfaces as 401.
    """
    token = extract_access_token(request)
    refresh_token = request.cookies.get(REFRESH_COOKIE)

    if token:
        try:
            return await sessions.authenticate(token)
        except TokenExpiredError:
            if not refresh_token:
                raise
    elif not refresh_token:
        raise AuthenticationError("missing access token")

    tokens = await sessions.refresh_session(refresh_token)
    set_session_cookies(response, tokens.access_token, tokens.refresh_token, settings.jwt)
    user_id = await sessions.authenticate(tokens.access_token)
    log.info("silent_refresh", user_id=user_id)
    return user_id


async def get_optional_user_id(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
) -> Optional[str]:
    """Like get_current_user_id but returns None instead of raising.

    An expired or missing access token falls back to the subject of the
    refresh cookie; nothing is rotated and no cookies are written.
    """
    token = extract_access_token(request)
    if token:
        try:
            return await sessions.authenticate(token)
        except AuthenticationError:
            pass

    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        return None
    try:
        return await sessions.refresh_subject(refresh_token)
    except AuthenticationError:
        return None

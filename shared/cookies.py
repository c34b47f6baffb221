"""
Session cookie helpers.

Both tokens travel as HTTP-only, SameSite=Lax cookies scoped to "/". The
secure flag follows COOKIE_SECURE, which AppSettings forces on in
production.
"""

from __future__ import annotations

from starlette.responses import Response

from config import JWTSettings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def set_session_cookies(
    response: Response, access_token: str, refresh_token: str, settings: JWTSettings
) -> Response:
    response.set_cookie(
        ACCESS_COOKIE,
        value=access_token,
        max_age=settings.access_token_ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=refresh_token,
        max_age=settings.refresh_token_ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


def clear_session_cookies(response: Response, settings: JWTSettings) -> Response:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite="lax",
        )
    return response

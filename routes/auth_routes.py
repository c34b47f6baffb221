"""
Authentication and profile endpoints.

POST /auth/signup                  - create account, sign in        (201)
POST /auth/login                   - password login                 (200)
POST /auth/refresh                 - rotate the token pair          (200)
POST /auth/logout                  - clear session cookies          (200)
GET  /auth/me                      - current profile                (200)
POST /auth/add-profile-pic         - multipart avatar upload        (200)
POST /auth/add-about-me            - set or clear about-me          (200)
POST /auth/add-mobile-number       - set phone number               (200)
POST /auth/request-password-reset  - uniform response               (202)
POST /auth/reset-password          - consume reset token            (200)
POST /auth/verify-email            - mark current user verified     (200)
POST /auth/send-verification       - email a confirmation link      (200)
POST /auth/confirm-email           - consume a confirmation link    (200)

Cookies are written on the injected Response, so handlers return models
rather than Response objects.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, Response, UploadFile, status

from config import AppSettings
from dependencies import (
    get_auth_service,
    get_current_user_id,
    get_optional_user_id,
    get_profile_service,
    get_session_manager,
    get_settings,
)
from errors import AuthenticationError, NotFoundError
from schemas.dto.requests.auth import (
    ConfirmEmailRequest,
    LoginRequest,
    RequestPasswordResetRequest,
    ResetPasswordRequest,
    SignupRequest,
)
from schemas.dto.requests.profile import AboutMeRequest, MobileNumberRequest
from schemas.dto.responses.auth import (
    LoginResponse,
    LogoutResponse,
    ProfileResponse,
    RefreshResponse,
    SendVerificationResponse,
    SignupResponse,
    UserProfileResponse,
    VerifyEmailResponse,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.auth_service import AuthService
from services.profile_service import MAX_AVATAR_BYTES, ProfileService, ensure_avatar_size
from services.session_manager import SessionManager
from shared.cookies import REFRESH_COOKIE, clear_session_cookies, set_session_cookies

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)

_RESET_REQUESTED_MESSAGE = (
    "If an account exists for that email, a password reset link has been sent."
)


# ── Sessions ─────────────────────────────────────────────────────────────────


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=SignupResponse)
async def signup(
    body: SignupRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> SignupResponse:
    user, tokens, verification_sent = await auth.signup(body.name, body.email, body.password)
    set_session_cookies(response, tokens.access_token, tokens.refresh_token, settings.jwt)
    return SignupResponse(
        access_token=tokens.access_token,
        user=UserProfileResponse.from_user(user),
        requires_verification=True,
        verification_sent=verification_sent,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    user, tokens = await auth.login(body.email, body.password)
    set_session_cookies(response, tokens.access_token, tokens.refresh_token, settings.jwt)
    return LoginResponse(
        access_token=tokens.access_token, user=UserProfileResponse.from_user(user)
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    settings: AppSettings = Depends(get_settings),
) -> RefreshResponse:
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        raise AuthenticationError("missing refresh token")
    tokens = await sessions.refresh_session(refresh_token)
    set_session_cookies(response, tokens.access_token, tokens.refresh_token, settings.jwt)
    return RefreshResponse(access_token=tokens.access_token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    user_id: Optional[str] = Depends(get_optional_user_id),
    sessions: SessionManager = Depends(get_session_manager),
    settings: AppSettings = Depends(get_settings),
) -> LogoutResponse:
    await sessions.revoke(user_id)
    clear_session_cookies(response, settings.jwt)
    return LogoutResponse(success=True)


@router.get("/me", response_model=UserProfileResponse)
async def me(
    user_id: str = Depends(get_current_user_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> UserProfileResponse:
    user = await sessions.get_user(user_id)
    if user is None:
        raise NotFoundError("user not found")
    return UserProfileResponse.from_user(user)


# ── Profile ──────────────────────────────────────────────────────────────────


@router.post("/add-profile-pic", response_model=ProfileResponse)
async def add_profile_pic(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    # Rejected before buffering: declared size first, then a bounded read
    ensure_avatar_size(file.size)
    data = await file.read(MAX_AVATAR_BYTES + 1)
    user = await profiles.set_avatar(
        user_id, data, file.filename or "avatar", file.content_type or ""
    )
    return ProfileResponse(success=True, user=UserProfileResponse.from_user(user))


@router.post("/add-about-me", response_model=ProfileResponse)
async def add_about_me(
    body: AboutMeRequest,
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    user = await profiles.set_about_me(user_id, body.about_me)
    return ProfileResponse(success=True, user=UserProfileResponse.from_user(user))


@router.post("/add-mobile-number", response_model=ProfileResponse)
async def add_mobile_number(
    body: MobileNumberRequest,
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    user = await profiles.set_phone(user_id, body.phone)
    return ProfileResponse(success=True, user=UserProfileResponse.from_user(user))


# ── Password reset ───────────────────────────────────────────────────────────


@router.post(
    "/request-password-reset",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MessageResponse,
)
async def request_password_reset(
    body: RequestPasswordResetRequest,
    background_tasks: BackgroundTasks,
    sessions: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    # Lookup, token write and email all run after the response is sent, so
    # neither body nor latency depends on whether the account exists.
    background_tasks.add_task(sessions.request_password_reset, body.email)
    return MessageResponse(success=True, message=_RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await sessions.reset_password(body.token, body.password)
    # Sessions minted before the reset no longer authenticate
    clear_session_cookies(response, settings.jwt)
    return MessageResponse(success=True, message="password has been reset")


# ── Email verification ───────────────────────────────────────────────────────


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    user_id: str = Depends(get_current_user_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> VerifyEmailResponse:
    user = await sessions.verify_email(user_id)
    return VerifyEmailResponse(
        success=True, message="email verified", email_verified=user.email_verified
    )


@router.post("/send-verification", response_model=SendVerificationResponse)
async def send_verification(
    user_id: str = Depends(get_current_user_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> SendVerificationResponse:
    sent = await sessions.send_verification_email(user_id)
    message = (
        "verification email sent"
        if sent
        else "verification email could not be sent, please retry later"
    )
    return SendVerificationResponse(success=True, verification_sent=sent, message=message)


@router.post("/confirm-email", response_model=VerifyEmailResponse)
async def confirm_email(
    body: ConfirmEmailRequest,
    sessions: SessionManager = Depends(get_session_manager),
) -> VerifyEmailResponse:
    user = await sessions.confirm_email(body.token)
    return VerifyEmailResponse(
        success=True, message="email verified", email_verified=user.email_verified
    )

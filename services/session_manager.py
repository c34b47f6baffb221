"""
Session lifecycle: token issuance, validation, rotation and revocation, plus
the single-use tokens behind password reset and email verification.

Sessions are stateless JWT pairs. Each token carries the user's
credential_version, and validation compares it with the stored value, so a
password change invalidates every token minted before it. There is no
server-side denylist: revoke() only clears cookies and presence, and an
access token already handed out keeps working until its TTL runs out.

Session states: Anonymous -> Authenticated (issue_session)
-> Authenticated (refresh_session, new token material)
-> Anonymous (revoke, or a terminal TokenInvalidError).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from config import JWTSettings, TokenSettings
from errors import (
    AuthenticationError,
    DeliveryError,
    NotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider, EmailTemplate
from infrastructure.token_signer import TokenSigner, TokenType
from repositories.protocol import CredentialStore, UserPatch
from schemas.models.token import PendingToken, TokenPurpose
from schemas.models.user import UserDoc
from services.password_policy import ensure_strong_password
from shared.crypto import hash_password, hash_token
from shared.datetime_utils import is_expired, utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        signer: TokenSigner,
        email: EmailProvider,
        jwt_settings: JWTSettings,
        token_settings: TokenSettings,
        app_url: str = "https://parley.chat",
    ) -> None:
        self._store = store
        self._signer = signer
        self._email = email
        self._access_ttl = timedelta(seconds=jwt_settings.access_token_ttl_seconds)
        self._refresh_ttl = timedelta(seconds=jwt_settings.refresh_token_ttl_seconds)
        self._tokens = token_settings
        self._app_url = app_url.rstrip("/")

    # ── Sessions ─────────────────────────────────────────────────────────────

    def issue_session(self, user: UserDoc) -> SessionTokens:
        """Mint an access/refresh pair for *user*. Does not touch the store."""
        claims = {"sub": user.user_id, "ver": user.credential_version}
        tokens = SessionTokens(
            access_token=self._signer.sign(
                {**claims, "type": TokenType.ACCESS.value}, self._access_ttl
            ),
            refresh_token=self._signer.sign(
                {**claims, "type": TokenType.REFRESH.value}, self._refresh_ttl
            ),
        )
        log.info("session_issued", user_id=user.user_id)
        return tokens

    async def authenticate(self, access_token: str) -> str:
        """Return the user id behind *access_token*.

        Raises:
            TokenExpiredError: TTL elapsed; the caller may try a silent refresh.
            TokenInvalidError: malformed, tampered, wrong type, unknown subject
                or minted before the last password change.
        """
        if not access_token:
            raise AuthenticationError("missing access token")
        claims = self._signer.verify(access_token, TokenType.ACCESS)
        user = await self._session_holder(claims)
        return user.user_id

    async def refresh_session(self, refresh_token: str) -> SessionTokens:
        """Exchange a valid refresh token for a brand-new pair (rotation)."""
        if not refresh_token:
            raise AuthenticationError("missing refresh token")
        try:
            claims = self._signer.verify(refresh_token, TokenType.REFRESH)
            user = await self._session_holder(claims)
        except AuthenticationError as e:
            log.warning("token_refresh_failed", reason=e.error_code)
            raise

        tokens = self.issue_session(user)
        log.info("token_refreshed", user_id=user.user_id)
        return tokens

    async def refresh_subject(self, refresh_token: str) -> str:
        """Return the user id behind a valid refresh token without rotating it."""
        if not refresh_token:
            raise AuthenticationError("missing refresh token")
        claims = self._signer.verify(refresh_token, TokenType.REFRESH)
        user = await self._session_holder(claims)
        return user.user_id

    async def revoke(self, user_id: Optional[str]) -> None:
        """End the session of *user_id*: the caller clears both cookies.

        Only presence is updated server-side; tokens already issued stay
        valid until they expire.
        """
        if not user_id:
            log.info("logout", user_id=None)
            return
        try:
            await self._store.update(user_id, UserPatch(set={"is_online": False}))
        except NotFoundError:
            log.warning("logout_unknown_user", user_id=user_id)
            return
        log.info("logout", user_id=user_id)

    async def get_user(self, user_id: str) -> Optional[UserDoc]:
        return await self._store.find_by_id(user_id)

    async def _session_holder(self, claims: dict[str, Any]) -> UserDoc:
        user = await self._store.find_by_id(claims["sub"])
        if user is None:
            log.warning("session_rejected", reason="subject_missing", user_id=claims["sub"])
            raise TokenInvalidError("invalid token")
        if claims.get("ver") != user.credential_version:
            log.warning("session_rejected", reason="credential_changed", user_id=user.user_id)
            raise TokenInvalidError("invalid token")
        return user

    # ── Password reset ───────────────────────────────────────────────────────

    async def request_password_reset(self, email: str) -> None:
        """Store and email a reset token if *email* belongs to an account.

        Returns nothing either way so the outcome never reveals whether the
        account exists; the token is generated and hashed in both branches.
        A delivery failure is logged and leaves the stored token usable.
        """
        email = normalize_email(email)
        token = generate_secure_token()
        token_hash = hash_token(token)

        user = await self._store.find_by_email(email) if email else None
        if user is None:
            log.info("password_reset_requested", email_exists=False)
            return

        ttl = self._tokens.password_reset_ttl_seconds
        await self._store_pending_token(user, TokenPurpose.PASSWORD_RESET, token_hash, ttl)
        log.info("password_reset_requested", email_exists=True, user_id=user.user_id)

        link = f"{self._app_url}/reset-password?token={token}"
        await self._deliver(user, EmailTemplate.RESET_PASSWORD, link, ttl)

    async def reset_password(self, token: str, new_password: str) -> UserDoc:
        """Consume a reset token and set *new_password*.

        Bumps credential_version so every session minted before the reset
        stops authenticating.
        """
        ensure_strong_password(new_password)

        token_hash = hash_token(token or "")
        user = await self._load_pending_holder(TokenPurpose.PASSWORD_RESET, token_hash)

        patch = UserPatch(
            set={"password_hash": hash_password(new_password), "password_changed_at": utcnow()},
            inc={"credential_version": 1},
        )
        updated = await self._store.consume_token(
            TokenPurpose.PASSWORD_RESET, token_hash, patch
        )
        if updated is None:
            # Another request consumed the same token first
            raise TokenInvalidError("invalid or already used token")

        log.info("password_reset_completed", user_id=user.user_id)
        return updated

    # ── Email verification ───────────────────────────────────────────────────

    async def verify_email(self, user_id: str) -> UserDoc:
        """Mark the authenticated user's email as verified; idempotent."""
        user = await self._store.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        if user.email_verified:
            return user

        updated = await self._store.update(
            user_id,
            UserPatch(set={"email_verified": True}, unset=(TokenPurpose.EMAIL_VERIFICATION.value,)),
        )
        log.info("email_verified", user_id=user_id)
        return updated

    async def send_verification_email(self, user_id: str) -> bool:
        """Store a verification token and email its link.

        Returns:
            Whether the email went out. On False the token is still stored,
            so a resend or a late delivery can still confirm it.
        """
        user = await self._store.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        if user.email_verified:
            raise ValidationError("email already verified")
        return await self.deliver_verification(user)

    async def deliver_verification(self, user: UserDoc) -> bool:
        token = generate_secure_token()
        ttl = self._tokens.email_verification_ttl_seconds
        await self._store_pending_token(
            user, TokenPurpose.EMAIL_VERIFICATION, hash_token(token), ttl
        )
        link = f"{self._app_url}/confirm-email?token={token}"
        return await self._deliver(user, EmailTemplate.VERIFY_EMAIL, link, ttl)

    async def confirm_email(self, token: str) -> UserDoc:
        """Consume an emailed verification token and mark its owner verified."""
        token_hash = hash_token(token or "")
        await self._load_pending_holder(TokenPurpose.EMAIL_VERIFICATION, token_hash)

        updated = await self._store.consume_token(
            TokenPurpose.EMAIL_VERIFICATION,
            token_hash,
            UserPatch(set={"email_verified": True}),
        )
        if updated is None:
            raise TokenInvalidError("invalid or already used token")

        log.info("email_verified", user_id=updated.user_id, via="link")
        return updated

    # ── Single-use token helpers ─────────────────────────────────────────────

    async def _store_pending_token(
        self, user: UserDoc, purpose: TokenPurpose, token_hash: str, ttl_seconds: int
    ) -> None:
        # One slot per purpose: writing a new token drops the previous one
        now = utcnow()
        pending = PendingToken(
            token_hash=token_hash,
            expires_at=now + timedelta(seconds=ttl_seconds),
            created_at=now,
        )
        await self._store.update(user.user_id, UserPatch(set={purpose.value: pending}))

    async def _load_pending_holder(
        self, purpose: TokenPurpose, token_hash: str
    ) -> UserDoc:
        user = await self._store.find_by_token(purpose, token_hash)
        if user is None:
            raise TokenInvalidError("invalid or already used token")

        pending = user.pending_token(purpose)
        if pending is None or is_expired(pending.expires_at):
            await self._store.update(user.user_id, UserPatch(unset=(purpose.value,)))
            log.info("pending_token_expired", user_id=user.user_id, purpose=purpose.value)
            raise TokenExpiredError("token expired")
        return user

    async def _deliver(
        self, user: UserDoc, template: EmailTemplate, link: str, ttl_seconds: int
    ) -> bool:
        try:
            await self._email.send(
                user.email,
                template,
                {
                    "user_name": user.user_name,
                    "link": link,
                    "expires_in_minutes": ttl_seconds // 60,
                },
            )
        except DeliveryError as e:
            log.warning(
                "email_delivery_failed",
                user_id=user.user_id,
                template=template.value,
                error=e.message,
            )
            return False
        return True

"""
Signup and login.

Inputs are validated before any store access, so a rejected request never
leaves a partial account behind. Login failures are uniform: an unknown
email and a wrong password both raise the same AuthenticationError after
the same amount of argon2 work. There is no lockout; repeated failures do
not block a later correct attempt.
"""

from __future__ import annotations

from typing import Tuple

from errors import AuthenticationError, ConflictError, ValidationError
from repositories.protocol import CredentialStore, UserPatch
from schemas.models.user import UserDoc
from services.password_policy import ensure_strong_password
from services.session_manager import SessionManager, SessionTokens
from shared.crypto import burn_password_check, hash_password, verify_password
from shared.datetime_utils import utcnow
from shared.logging import get_logger
from shared.validators import normalize_email, validate_email

log = get_logger(__name__)

MAX_NAME_LENGTH = 64


class AuthService:
    def __init__(self, store: CredentialStore, sessions: SessionManager) -> None:
        self._store = store
        self._sessions = sessions

    async def signup(
        self, name: str, email: str, password: str
    ) -> Tuple[UserDoc, SessionTokens, bool]:
        """Create an account and sign it in.

        Returns:
            (user, tokens, verification_sent)

        Raises:
            ValidationError / WeakPasswordError: bad name, email or password.
            ConflictError: the email is already registered.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"name must be at most {MAX_NAME_LENGTH} characters", field="name"
            )
        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError("invalid email address", field="email")
        ensure_strong_password(password)

        if await self._store.find_by_email(email) is not None:
            log.warning("signup_failed", reason="email_exists")
            raise ConflictError("email already registered", field="email")

        now = utcnow()
        user = await self._store.create(
            UserDoc(
                email=email,
                password_hash=hash_password(password),
                user_name=name,
                created_at=now,
                updated_at=now,
            )
        )
        log.info("user_registered", user_id=user.user_id, auth_method="password")

        tokens = self._sessions.issue_session(user)
        verification_sent = await self._sessions.deliver_verification(user)
        return user, tokens, verification_sent

    async def login(self, email: str, password: str) -> Tuple[UserDoc, SessionTokens]:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("email and password are required")

        user = await self._store.find_by_email(email)
        if user is None:
            burn_password_check(password)
            # Do not reveal which part failed
            log.warning("login_failed", reason="invalid_credentials", email_exists=False)
            raise AuthenticationError("invalid credentials")

        if not verify_password(password, user.password_hash):
            log.warning("login_failed", reason="invalid_credentials", user_id=user.user_id)
            raise AuthenticationError("invalid credentials")

        now = utcnow()
        user = await self._store.update(
            user.user_id, UserPatch(set={"is_online": True, "last_login_at": now})
        )
        tokens = self._sessions.issue_session(user)
        log.info("login_success", user_id=user.user_id, auth_method="password")
        return user, tokens

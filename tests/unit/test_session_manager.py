"""Unit tests for SessionManager: token lifecycle, password reset, email verification."""

from datetime import timedelta

import pytest

from config import JWTSettings
from errors import (
    AuthenticationError,
    NotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
    WeakPasswordError,
)
from infrastructure.email.protocol import EmailTemplate
from infrastructure.token_signer import TokenSigner
from schemas.models.token import TokenPurpose
from shared.crypto import hash_token
from shared.datetime_utils import utcnow

PASSWORD = "StrongP@ss1"
NEW_PASSWORD = "Fresh#Pass42"


def _forged_signer() -> TokenSigner:
    return TokenSigner(JWTSettings(jwt_secret="someone-elses-secret", jwt_private_key="", jwt_public_key=""))


def _access_claims(user, **overrides):
    claims = {"sub": user.user_id, "ver": user.credential_version, "type": "access"}
    claims.update(overrides)
    return claims


# ── issue / authenticate ─────────────────────────────────────────────────────


class TestIssueAndAuthenticate:
    async def test_authenticate_returns_issued_subject(self, sessions, john):
        tokens = sessions.issue_session(john)
        assert await sessions.authenticate(tokens.access_token) == john.user_id

    async def test_access_and_refresh_differ(self, sessions, john):
        tokens = sessions.issue_session(john)
        assert tokens.access_token != tokens.refresh_token

    async def test_access_ttl_shorter_than_refresh(self, sessions, signer, john):
        tokens = sessions.issue_session(john)
        access = signer.verify(tokens.access_token)
        refresh = signer.verify(tokens.refresh_token)
        assert access["sub"] == refresh["sub"] == john.user_id
        assert access["exp"] < refresh["exp"]

    async def test_issue_does_not_touch_store(self, sessions, store, john):
        before = dict(store.docs[john.user_id])
        sessions.issue_session(john)
        assert store.docs[john.user_id] == before

    async def test_expired_token_is_expired_not_invalid(self, sessions, signer, john):
        token = signer.sign(_access_claims(john), timedelta(seconds=-30))
        with pytest.raises(TokenExpiredError):
            await sessions.authenticate(token)

    async def test_tampered_signature_is_invalid(self, sessions, john):
        token = _forged_signer().sign(_access_claims(john), timedelta(minutes=5))
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(token)

    async def test_tampered_and_expired_is_still_invalid(self, sessions, john):
        token = _forged_signer().sign(_access_claims(john), timedelta(seconds=-30))
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(token)

    async def test_tampered_payload_is_invalid(self, sessions, john):
        header, payload, signature = sessions.issue_session(john).access_token.split(".")
        flipped = payload[:-2] + ("A" if payload[-2] != "A" else "B") + payload[-1]
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(".".join([header, flipped, signature]))

    async def test_garbage_is_invalid(self, sessions):
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate("not-a-jwt")

    async def test_missing_token_is_unauthenticated(self, sessions):
        with pytest.raises(AuthenticationError) as exc:
            await sessions.authenticate("")
        assert exc.value.error_code == "authentication_error"

    async def test_refresh_token_is_not_an_access_token(self, sessions, john):
        tokens = sessions.issue_session(john)
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(tokens.refresh_token)

    async def test_deleted_subject_is_invalid(self, sessions, store, john):
        tokens = sessions.issue_session(john)
        store.delete(john.user_id)
        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(tokens.access_token)


# ── refresh ──────────────────────────────────────────────────────────────────


class TestRefreshSession:
    async def test_rotates_both_tokens(self, sessions, john):
        first = sessions.issue_session(john)
        second = await sessions.refresh_session(first.refresh_token)
        assert second.access_token != first.access_token
        assert second.refresh_token != first.refresh_token
        assert await sessions.authenticate(second.access_token) == john.user_id

    async def test_new_access_differs_from_expired_one(self, sessions, signer, john):
        expired = signer.sign(_access_claims(john), timedelta(seconds=-30))
        refreshed = await sessions.refresh_session(sessions.issue_session(john).refresh_token)
        assert refreshed.access_token != expired

    async def test_expired_refresh_token(self, sessions, signer, john):
        token = signer.sign(_access_claims(john, type="refresh"), timedelta(seconds=-30))
        with pytest.raises(TokenExpiredError):
            await sessions.refresh_session(token)

    async def test_access_token_cannot_refresh(self, sessions, john):
        tokens = sessions.issue_session(john)
        with pytest.raises(TokenInvalidError):
            await sessions.refresh_session(tokens.access_token)

    async def test_rejects_deleted_subject(self, sessions, store, john):
        tokens = sessions.issue_session(john)
        store.delete(john.user_id)
        with pytest.raises(TokenInvalidError):
            await sessions.refresh_session(tokens.refresh_token)

    async def test_missing_refresh_token(self, sessions):
        with pytest.raises(AuthenticationError):
            await sessions.refresh_session("")


class TestRefreshSubject:
    async def test_returns_subject_without_rotating(self, sessions, mocker, john):
        tokens = sessions.issue_session(john)
        issue = mocker.spy(sessions, "issue_session")
        assert await sessions.refresh_subject(tokens.refresh_token) == john.user_id
        assert issue.call_count == 0

    async def test_access_token_is_not_a_refresh_token(self, sessions, john):
        tokens = sessions.issue_session(john)
        with pytest.raises(TokenInvalidError):
            await sessions.refresh_subject(tokens.access_token)

    async def test_expired_refresh_token(self, sessions, signer, john):
        token = signer.sign(_access_claims(john, type="refresh"), timedelta(seconds=-30))
        with pytest.raises(TokenExpiredError):
            await sessions.refresh_subject(token)

    async def test_missing_refresh_token(self, sessions):
        with pytest.raises(AuthenticationError):
            await sessions.refresh_subject("")


# ── revoke ───────────────────────────────────────────────────────────────────


class TestRevoke:
    async def test_marks_user_offline(self, sessions, auth_service, store, john):
        await auth_service.login("john@example.com", PASSWORD)
        assert (await store.find_by_id(john.user_id)).is_online is True
        await sessions.revoke(john.user_id)
        assert (await store.find_by_id(john.user_id)).is_online is False

    async def test_issued_access_token_survives_revoke(self, sessions, john):
        # No server-side denylist: only the TTL ends an already-issued token
        tokens = sessions.issue_session(john)
        await sessions.revoke(john.user_id)
        assert await sessions.authenticate(tokens.access_token) == john.user_id

    async def test_anonymous_and_unknown_users_are_noops(self, sessions):
        await sessions.revoke(None)
        await sessions.revoke("507f1f77bcf86cd799439011")


# ── password reset ───────────────────────────────────────────────────────────


class TestRequestPasswordReset:
    async def test_existing_email_stores_token_and_sends_link(self, sessions, store, email_provider, john):
        email_provider.sent.clear()
        result = await sessions.request_password_reset("  John@Example.com ")
        assert result is None

        to, kind, payload = email_provider.sent[-1]
        assert to == "john@example.com"
        assert kind == EmailTemplate.RESET_PASSWORD
        assert payload["link"].startswith("https://parley.test/reset-password?token=")

        token = email_provider.last_token(EmailTemplate.RESET_PASSWORD)
        user = await store.find_by_id(john.user_id)
        assert user.password_reset.token_hash == hash_token(token)
        assert user.password_reset.token_hash != token

    async def test_unknown_email_is_indistinguishable(self, sessions, email_provider, john):
        email_provider.sent.clear()
        found = await sessions.request_password_reset("john@example.com")
        missing = await sessions.request_password_reset("nobody@example.com")
        assert found == missing
        assert [kind for _, kind, _ in email_provider.sent] == [EmailTemplate.RESET_PASSWORD]

    async def test_delivery_failure_keeps_token_valid(self, sessions, store, email_provider, auth_service, john):
        email_provider.fail = True
        await sessions.request_password_reset("john@example.com")
        token = email_provider.last_token(EmailTemplate.RESET_PASSWORD)
        assert (await store.find_by_id(john.user_id)).password_reset is not None

        email_provider.fail = False
        await sessions.reset_password(token, NEW_PASSWORD)
        user, _ = await auth_service.login("john@example.com", NEW_PASSWORD)
        assert user.user_id == john.user_id

    async def test_latest_request_wins(self, sessions, email_provider, john):
        await sessions.request_password_reset("john@example.com")
        first = email_provider.last_token(EmailTemplate.RESET_PASSWORD)
        await sessions.request_password_reset("john@example.com")
        second = email_provider.last_token(EmailTemplate.RESET_PASSWORD)

        with pytest.raises(TokenInvalidError):
            await sessions.reset_password(first, NEW_PASSWORD)
        await sessions.reset_password(second, NEW_PASSWORD)


class TestResetPassword:
    async def _reset_token(self, sessions, email_provider):
        await sessions.request_password_reset("john@example.com")
        return email_provider.last_token(EmailTemplate.RESET_PASSWORD)

    async def test_old_password_stops_working(self, sessions, auth_service, email_provider, john):
        token = await self._reset_token(sessions, email_provider)
        await sessions.reset_password(token, NEW_PASSWORD)

        with pytest.raises(AuthenticationError):
            await auth_service.login("john@example.com", PASSWORD)
        user, _ = await auth_service.login("john@example.com", NEW_PASSWORD)
        assert user.user_id == john.user_id

    async def test_token_is_single_use(self, sessions, email_provider, store, john):
        token = await self._reset_token(sessions, email_provider)
        await sessions.reset_password(token, NEW_PASSWORD)
        assert (await store.find_by_id(john.user_id)).password_reset is None

        with pytest.raises(TokenInvalidError):
            await sessions.reset_password(token, "Another#Pass9")

    async def test_existing_sessions_stop_authenticating(self, sessions, email_provider, john):
        before = sessions.issue_session(john)
        token = await self._reset_token(sessions, email_provider)
        updated = await sessions.reset_password(token, NEW_PASSWORD)
        assert updated.credential_version == john.credential_version + 1

        with pytest.raises(TokenInvalidError):
            await sessions.authenticate(before.access_token)
        with pytest.raises(TokenInvalidError):
            await sessions.refresh_session(before.refresh_token)

    async def test_weak_password_rejected_before_any_change(self, sessions, email_provider, store, john):
        token = await self._reset_token(sessions, email_provider)
        before = await store.find_by_id(john.user_id)

        with pytest.raises(WeakPasswordError) as exc:
            await sessions.reset_password(token, "weak")
        assert "At least one uppercase letter" in exc.value.details

        after = await store.find_by_id(john.user_id)
        assert after.password_hash == before.password_hash
        assert after.password_reset == before.password_reset

    async def test_unknown_token(self, sessions, john):
        with pytest.raises(TokenInvalidError):
            await sessions.reset_password("made-up-token", NEW_PASSWORD)

    async def test_expired_token_is_cleared(self, sessions, email_provider, store, john):
        token = await self._reset_token(sessions, email_provider)
        store.docs[john.user_id]["password_reset"]["expires_at"] = utcnow() - timedelta(seconds=1)

        with pytest.raises(TokenExpiredError):
            await sessions.reset_password(token, NEW_PASSWORD)
        assert (await store.find_by_id(john.user_id)).password_reset is None


# ── email verification ───────────────────────────────────────────────────────


class TestVerifyEmail:
    async def test_marks_verified_and_clears_pending_token(self, sessions, store, john):
        assert (await store.find_by_id(john.user_id)).email_verification is not None
        user = await sessions.verify_email(john.user_id)
        assert user.email_verified is True
        assert user.email_verification is None

    async def test_idempotent(self, sessions, john):
        await sessions.verify_email(john.user_id)
        again = await sessions.verify_email(john.user_id)
        assert again.email_verified is True

    async def test_unknown_user(self, sessions):
        with pytest.raises(NotFoundError):
            await sessions.verify_email("507f1f77bcf86cd799439011")


class TestEmailConfirmation:
    async def test_signup_sends_confirmation_link(self, email_provider, john):
        to, kind, payload = email_provider.sent[0]
        assert (to, kind) == ("john@example.com", EmailTemplate.VERIFY_EMAIL)
        assert payload["user_name"] == "John Doe"
        assert payload["expires_in_minutes"] == 60

    async def test_confirm_consumes_token(self, sessions, email_provider, john):
        token = email_provider.last_token(EmailTemplate.VERIFY_EMAIL)
        user = await sessions.confirm_email(token)
        assert user.email_verified is True
        with pytest.raises(TokenInvalidError):
            await sessions.confirm_email(token)

    async def test_resend_replaces_previous_token(self, sessions, email_provider, john):
        first = email_provider.last_token(EmailTemplate.VERIFY_EMAIL)
        assert await sessions.send_verification_email(john.user_id) is True
        second = email_provider.last_token(EmailTemplate.VERIFY_EMAIL)

        with pytest.raises(TokenInvalidError):
            await sessions.confirm_email(first)
        assert (await sessions.confirm_email(second)).email_verified is True

    async def test_delivery_failure_reported_token_kept(self, sessions, email_provider, store, john):
        email_provider.fail = True
        assert await sessions.send_verification_email(john.user_id) is False
        pending = (await store.find_by_id(john.user_id)).email_verification
        assert pending.token_hash == hash_token(email_provider.last_token(EmailTemplate.VERIFY_EMAIL))

    async def test_already_verified(self, sessions, john):
        await sessions.verify_email(john.user_id)
        with pytest.raises(ValidationError):
            await sessions.send_verification_email(john.user_id)

    async def test_expired_confirmation(self, sessions, email_provider, store, john):
        token = email_provider.last_token(EmailTemplate.VERIFY_EMAIL)
        store.docs[john.user_id][TokenPurpose.EMAIL_VERIFICATION.value]["expires_at"] = (
            utcnow() - timedelta(minutes=1)
        )
        with pytest.raises(TokenExpiredError):
            await sessions.confirm_email(token)

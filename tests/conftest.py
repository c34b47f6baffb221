"""
Shared fixtures: in-memory stand-ins for the credential store, the email
provider and image storage, plus a fully wired service graph on top of
them. No network or database is touched.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping, Optional

import pytest
from bson import ObjectId

from config import JWTSettings, TokenSettings
from errors import ConflictError, DeliveryError, NotFoundError, UploadError
from infrastructure.email.protocol import EmailTemplate
from infrastructure.storage.protocol import UploadedImage
from infrastructure.token_signer import TokenSigner
from repositories.protocol import UserPatch
from schemas.models.token import TokenPurpose
from schemas.models.user import UserDoc
from services.auth_service import AuthService
from services.profile_service import ProfileService
from services.session_manager import SessionManager

STRONG_PASSWORD = "StrongP@ss1"


class InMemoryCredentialStore:
    """CredentialStore over a dict of raw documents, applying patches like MongoDB."""

    def __init__(self) -> None:
        self.docs: dict[str, dict] = {}

    def _load(self, doc: Optional[dict]) -> Optional[UserDoc]:
        return UserDoc.from_mongo(copy.deepcopy(doc)) if doc is not None else None

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return self._load(next((d for d in self.docs.values() if d["email"] == email), None))

    async def find_by_id(self, user_id: str) -> Optional[UserDoc]:
        return self._load(self.docs.get(str(user_id)))

    async def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> Optional[UserDoc]:
        return self._load(self._holder(purpose, token_hash))

    async def create(self, user: UserDoc) -> UserDoc:
        if any(d["email"] == user.email for d in self.docs.values()):
            raise ConflictError("email already registered", field="email")
        doc = user.to_mongo()
        doc["_id"] = ObjectId()
        self.docs[str(doc["_id"])] = doc
        return self._load(doc)

    async def update(self, user_id: str, patch: UserPatch) -> UserDoc:
        doc = self.docs.get(str(user_id))
        if doc is None:
            raise NotFoundError("user not found")
        self._apply(doc, patch)
        return self._load(doc)

    async def consume_token(
        self, purpose: TokenPurpose, token_hash: str, patch: UserPatch
    ) -> Optional[UserDoc]:
        doc = self._holder(purpose, token_hash)
        if doc is None:
            return None
        self._apply(doc, patch)
        doc.pop(purpose.value, None)
        return self._load(doc)

    def delete(self, user_id: str) -> None:
        self.docs.pop(str(user_id), None)

    def _holder(self, purpose: TokenPurpose, token_hash: str) -> Optional[dict]:
        for doc in self.docs.values():
            pending = doc.get(purpose.value)
            if pending and pending["token_hash"] == token_hash:
                return doc
        return None

    @staticmethod
    def _apply(doc: dict, patch: UserPatch) -> None:
        update = patch.to_update()
        doc.update(copy.deepcopy(update.get("$set", {})))
        for key in update.get("$unset", {}):
            doc.pop(key, None)
        for key, amount in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + amount


class RecordingEmailProvider:
    """Records every send attempt; raises DeliveryError while ``fail`` is set."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, EmailTemplate, dict]] = []
        self.fail = False

    async def send(
        self, to_address: str, template_kind: EmailTemplate, payload: Mapping[str, Any]
    ) -> None:
        self.sent.append((to_address, EmailTemplate(template_kind), dict(payload)))
        if self.fail:
            raise DeliveryError("email could not be sent")

    def last_token(self, template: EmailTemplate) -> str:
        for _, kind, payload in reversed(self.sent):
            if kind == template:
                return payload["link"].split("token=", 1)[1]
        raise AssertionError(f"no {template.value} email was sent")


class FakeImageStorage:
    def __init__(self) -> None:
        self.uploads: list[tuple[str, int, str]] = []
        self.fail = False

    async def upload(self, data: bytes, filename: str, content_type: str) -> UploadedImage:
        if self.fail:
            raise UploadError("image upload failed")
        self.uploads.append((filename, len(data), content_type))
        public_id = f"avatars/{len(self.uploads)}"
        return UploadedImage(url=f"https://img.example.com/{public_id}.png", public_id=public_id)


@pytest.fixture
def jwt_settings() -> JWTSettings:
    return JWTSettings(
        jwt_secret="test-secret-for-hs256-signing-key",
        jwt_private_key="",
        jwt_public_key="",
        access_token_ttl_seconds=900,
        refresh_token_ttl_seconds=86400,
        cookie_secure=False,
    )


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(password_reset_ttl_seconds=900, email_verification_ttl_seconds=3600)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def image_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def signer(jwt_settings) -> TokenSigner:
    return TokenSigner(jwt_settings)


@pytest.fixture
def sessions(store, signer, email_provider, jwt_settings, token_settings) -> SessionManager:
    return SessionManager(
        store=store,
        signer=signer,
        email=email_provider,
        jwt_settings=jwt_settings,
        token_settings=token_settings,
        app_url="https://parley.test",
    )


@pytest.fixture
def auth_service(store, sessions) -> AuthService:
    return AuthService(store, sessions)


@pytest.fixture
def profile_service(store, image_storage) -> ProfileService:
    return ProfileService(store, image_storage)


@pytest.fixture
async def john(auth_service) -> UserDoc:
    user, _, _ = await auth_service.signup("John Doe", "john@example.com", STRONG_PASSWORD)
    return user

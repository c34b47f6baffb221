"""Profile mutations for an authenticated user: avatar, about-me, phone."""

from __future__ import annotations

from typing import Optional

from errors import ValidationError
from infrastructure.storage.protocol import ImageStorage
from repositories.protocol import CredentialStore, UserPatch
from schemas.models.user import Avatar, UserDoc
from shared.datetime_utils import utcnow
from shared.logging import get_logger
from shared.validators import normalize_phone

log = get_logger(__name__)

MAX_AVATAR_BYTES = 5 * 1024 * 1024
ALLOWED_AVATAR_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
MAX_ABOUT_ME_LENGTH = 500


def ensure_avatar_size(size: Optional[int]) -> None:
    """Reject an avatar over MAX_AVATAR_BYTES; an unknown size passes."""
    if size is not None and size > MAX_AVATAR_BYTES:
        raise ValidationError(
            "image is too large",
            field="file",
            details={"max_bytes": MAX_AVATAR_BYTES},
        )


class ProfileService:
    def __init__(self, store: CredentialStore, storage: ImageStorage) -> None:
        self._store = store
        self._storage = storage

    async def set_avatar(
        self, user_id: str, data: bytes, filename: str, content_type: str
    ) -> UserDoc:
        if content_type not in ALLOWED_AVATAR_TYPES:
            raise ValidationError(
                "unsupported image type",
                field="file",
                details={"allowed": sorted(ALLOWED_AVATAR_TYPES)},
            )
        if not data:
            raise ValidationError("image file is empty", field="file")
        ensure_avatar_size(len(data))

        uploaded = await self._storage.upload(data, filename or "avatar", content_type)
        avatar = Avatar(url=uploaded.url, public_id=uploaded.public_id, updated_at=utcnow())
        user = await self._store.update(user_id, UserPatch(set={"avatar": avatar}))
        log.info("avatar_updated", user_id=user_id, public_id=uploaded.public_id)
        return user

    async def set_about_me(self, user_id: str, about_me: str) -> UserDoc:
        about_me = (about_me or "").strip()
        if len(about_me) > MAX_ABOUT_ME_LENGTH:
            raise ValidationError(
                f"about me must be at most {MAX_ABOUT_ME_LENGTH} characters",
                field="about_me",
            )
        # An empty string clears the field
        if about_me:
            patch = UserPatch(set={"about_me": about_me})
        else:
            patch = UserPatch(unset=("about_me",))
        user = await self._store.update(user_id, patch)
        log.info("about_me_updated", user_id=user_id, cleared=not about_me)
        return user

    async def set_phone(self, user_id: str, phone: str) -> UserDoc:
        normalized = normalize_phone(phone)
        if normalized is None:
            raise ValidationError("invalid mobile number", field="phone")
        user = await self._store.update(user_id, UserPatch(set={"phone": normalized}))
        log.info("phone_updated", user_id=user_id)
        return user

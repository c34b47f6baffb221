"""
MongoDB implementation of CredentialStore over the `users` collection.

Every method touches exactly one document, so no transactions are needed:
updates go through find_one_and_update and return the post-update doc.
Lookup misses return None; update() of a missing user raises NotFoundError.
"""

from __future__ import annotations

from typing import Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from errors import ConflictError, NotFoundError
from repositories.protocol import UserPatch
from schemas.models.base import to_object_id
from schemas.models.token import TokenPurpose
from schemas.models.user import UserDoc
from shared.datetime_utils import utcnow
from shared.logging import get_logger

log = get_logger(__name__)


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        for purpose in TokenPurpose:
            await self._col.create_index(
                [(f"{purpose.value}.token_hash", ASCENDING)], sparse=True
            )

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        doc = await self._col.find_one({"email": email})
        return UserDoc.from_mongo(doc)

    async def find_by_id(self, user_id: str) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return UserDoc.from_mongo(doc)

    async def find_by_token(
        self, purpose: TokenPurpose, token_hash: str
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one({f"{purpose.value}.token_hash": token_hash})
        return UserDoc.from_mongo(doc)

    async def create(self, user: UserDoc) -> UserDoc:
        try:
            result = await self._col.insert_one(user.to_mongo())
        except DuplicateKeyError:
            # Two signups raced between the pre-check and the insert
            log.warning("user_create_failed", reason="duplicate_email")
            raise ConflictError("email already registered", field="email")
        return user.model_copy(update={"id": result.inserted_id})

    async def update(self, user_id: str, patch: UserPatch) -> UserDoc:
        oid = to_object_id(user_id)
        if oid is None:
            raise NotFoundError("user not found")
        doc = await self._col.find_one_and_update(
            {"_id": oid},
            self._with_timestamp(patch),
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("user not found")
        return UserDoc.from_mongo(doc)

    async def consume_token(
        self, purpose: TokenPurpose, token_hash: str, patch: UserPatch
    ) -> Optional[UserDoc]:
        """Apply *patch* and clear the token in one step; None if it is already gone.

        Matching on the token hash makes consumption single-use even when two
        requests present the same token concurrently: only one update matches.
        """
        consuming = UserPatch(
            set=patch.set, unset=tuple(patch.unset) + (purpose.value,), inc=patch.inc
        )
        doc = await self._col.find_one_and_update(
            {f"{purpose.value}.token_hash": token_hash},
            self._with_timestamp(consuming),
            return_document=ReturnDocument.AFTER,
        )
        return UserDoc.from_mongo(doc)

    @staticmethod
    def _with_timestamp(patch: UserPatch) -> dict:
        update = patch.to_update()
        update.setdefault("$set", {})["updated_at"] = utcnow()
        return update

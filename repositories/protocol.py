"""CredentialStore protocol - services depend on this, not the MongoDB repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from pydantic import BaseModel

from schemas.models.token import TokenPurpose
from schemas.models.user import UserDoc


@dataclass
class UserPatch:
    """A single-document change: fields to set, fields to remove, counters to bump."""

    set: dict[str, Any] = field(default_factory=dict)
    unset: tuple[str, ...] = ()
    inc: dict[str, int] = field(default_factory=dict)

    def to_update(self) -> dict:
        """Render as a MongoDB update document."""
        update: dict = {}
        if self.set:
            update["$set"] = {
                key: value.model_dump() if isinstance(value, BaseModel) else value
                for key, value in self.set.items()
            }
        if self.unset:
            update["$unset"] = {key: "" for key in self.unset}
        if self.inc:
            update["$inc"] = dict(self.inc)
        return update


class CredentialStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[UserDoc]: ...

    async def find_by_id(self, user_id: str) -> Optional[UserDoc]: ...

    async def find_by_token(
        self, purpose: TokenPurpose, token_hash: str
    ) -> Optional[UserDoc]: ...

    async def create(self, user: UserDoc) -> UserDoc: ...

    async def update(self, user_id: str, patch: UserPatch) -> UserDoc: ...

    async def consume_token(
        self, purpose: TokenPurpose, token_hash: str, patch: UserPatch
    ) -> Optional[UserDoc]: ...

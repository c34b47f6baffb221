"""EmailProvider protocol - services depend on this, not the concrete implementation."""

from enum import Enum
from typing import Any, Mapping, Protocol


class EmailTemplate(str, Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


class EmailProvider(Protocol):
    async def send(
        self,
        to_address: str,
        template_kind: EmailTemplate,
        payload: Mapping[str, Any],
    ) -> None:
        """Deliver one templated email; raises DeliveryError on failure."""
        ...

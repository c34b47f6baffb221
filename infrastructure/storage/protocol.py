"""ImageStorage protocol - services depend on this, not the concrete implementation."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


class ImageStorage(Protocol):
    async def upload(
        self, data: bytes, filename: str, content_type: str
    ) -> UploadedImage:
        """Store an image and return where it lives; raises UploadError on failure."""
        ...

"""Cloudinary implementation of ImageStorage.

Uses Cloudinary's signed REST upload endpoint through HttpClient instead of
the callback-based SDK, so an upload is a single awaited call that either
returns an UploadedImage or raises UploadError.
"""

import hashlib
import time
from typing import Optional

from config import StorageSettings
from errors import UploadError
from infrastructure.http_client import HttpClient
from infrastructure.storage.protocol import UploadedImage
from shared.logging import get_logger

log = get_logger(__name__)

_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


def sign_params(params: dict, api_secret: str) -> str:
    """Return Cloudinary's SHA-1 signature for *params*.

    Parameters are sorted by name, joined as ``k=v`` with ``&`` and the API
    secret is appended before hashing.
    """
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorage:
    def __init__(self, settings: StorageSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    @property
    def configured(self) -> bool:
        s = self._settings
        return bool(
            s.cloudinary_cloud_name and s.cloudinary_api_key and s.cloudinary_api_secret
        )

    async def upload(
        self, data: bytes, filename: str, content_type: str
    ) -> UploadedImage:
        if not self.configured:
            log.error("avatar_upload_failed", reason="storage_not_configured")
            raise UploadError("image storage is not configured")

        params = {
            "folder": self._settings.cloudinary_folder,
            "timestamp": int(time.time()),
        }
        form = {
            **{key: str(value) for key, value in params.items()},
            "api_key": self._settings.cloudinary_api_key,
            "signature": sign_params(params, self._settings.cloudinary_api_secret),
        }
        url = _UPLOAD_URL.format(cloud_name=self._settings.cloudinary_cloud_name)

        try:
            response = await self._http.post(
                url, data=form, files={"file": (filename, data, content_type)}
            )
        except Exception as e:
            log.error(
                "avatar_upload_error",
                filename=filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UploadError("image upload failed") from e

        if response.status_code != 200:
            log.error(
                "avatar_upload_failed",
                filename=filename,
                status_code=response.status_code,
                response=response.text[:200],
            )
            raise UploadError("image upload failed")

        body = response.json()
        secure_url: Optional[str] = body.get("secure_url")
        public_id: Optional[str] = body.get("public_id")
        if not secure_url or not public_id:
            log.error("avatar_upload_failed", filename=filename, reason="bad_response")
            raise UploadError("image upload failed")

        log.info("avatar_uploaded", public_id=public_id, bytes=len(data))
        return UploadedImage(url=secure_url, public_id=public_id)

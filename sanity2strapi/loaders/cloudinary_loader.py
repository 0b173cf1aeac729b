"""Cloudinary asset uploader."""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from cloudinary.utils import api_sign_request

from ..errors import PreFlightError
from ..models.record import AssetEntry
from .base import AssetUploader, raise_for_rejection, response_body, send_with_retry

logger = logging.getLogger(__name__)


UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
UPLOAD_FOLDER = "sanity-migration"
REQUIRED_CREDENTIALS = ("cloud_name", "api_key", "api_secret")


class CloudinaryUploader(AssetUploader):
    """
    Uploads asset files with Cloudinary's signed upload API.

    The asset's content hash is used as the public id, so re-running a
    migration overwrites instead of duplicating.
    """

    provider = "cloudinary"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    @classmethod
    def from_credentials(cls, credentials: Dict[str, str], **kwargs: Any) -> "CloudinaryUploader":
        """
        Raises:
            PreFlightError: If a credential is missing
        """
        missing = [k for k in REQUIRED_CREDENTIALS if not credentials.get(k)]
        if missing:
            raise PreFlightError(f"Cloudinary asset provider requires: {', '.join(missing)}")
        return cls(
            cloud_name=credentials["cloud_name"],
            api_key=credentials["api_key"],
            api_secret=credentials["api_secret"],
            **kwargs,
        )

    @property
    def upload_url(self) -> str:
        return UPLOAD_URL.format(cloud_name=self.cloud_name)

    def signed_params(self, entry: AssetEntry) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "folder": UPLOAD_FOLDER,
            "timestamp": int(time.time()),
            "unique_filename": "false",
            "use_filename": "true",
        }
        if entry.identity:
            params["public_id"] = entry.identity
        params["signature"] = api_sign_request(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    async def upload_asset(self, file_path: str, entry: AssetEntry) -> Dict[str, Any]:
        filename = entry.original_filename or Path(file_path).name
        content = Path(file_path).read_bytes()

        response = await send_with_retry(
            self._client, "POST", self.upload_url,
            retry_attempts=self.retry_attempts,
            retry_delay=self.retry_delay,
            data=self.signed_params(entry),
            files={"file": (filename, content)},
        )
        raise_for_rejection(response, f"Cloudinary upload of {filename}")

        body = response_body(response) or {}
        logger.debug(f"Cloudinary stored {filename} as {body.get('public_id')}")
        return {
            "id": body.get("public_id"),
            "url": body.get("secure_url"),
            "provider": self.provider,
        }

    async def close(self) -> None:
        await self._client.aclose()

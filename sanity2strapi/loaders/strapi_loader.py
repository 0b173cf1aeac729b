"""Strapi REST loader."""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from ..models.migration import MigrationConfig
from ..models.record import AssetEntry, MigrationResult
from ..models.target import TargetSchema
from .base import BaseLoader, raise_for_rejection, response_body, send_with_retry

logger = logging.getLogger(__name__)


UPLOAD_PATH = "/api/upload"
HEALTH_PATH = "/_health"


class StrapiLoader(BaseLoader):
    """
    Loader for the Strapi content API.

    Collections are created with ``POST /api/<plural>`` and addressed as
    ``/api/<plural>/<documentId>``. Single types live at
    ``/api/<singular>`` and are written with ``PUT``.
    """

    provider = "strapi"

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Strapi loader.

        Args:
            base_url: Strapi server URL
            api_token: API token sent as a bearer credential
            retry_attempts: Retries for transport errors, 429 and 5xx
            retry_delay: Initial delay between retries in seconds
            timeout: Per-request timeout in seconds
            transport: Optional transport override
        """
        super().__init__(retry_attempts, retry_delay)
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: MigrationConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> "StrapiLoader":
        return cls(
            base_url=config.strapi_url,
            api_token=config.api_token,
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay,
            timeout=config.request_timeout,
            transport=transport,
        )

    @staticmethod
    def collection_path(schema: TargetSchema) -> str:
        if schema.is_singleton:
            return f"/api/{schema.singular_name}"
        return f"/api/{schema.plural_name}"

    def entity_path(self, schema: TargetSchema, document_id: Any) -> str:
        if schema.is_singleton:
            return self.collection_path(schema)
        return f"{self.collection_path(schema)}/{document_id}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await send_with_retry(
            self._client, method, path,
            retry_attempts=self.retry_attempts,
            retry_delay=self.retry_delay,
            **kwargs,
        )

    @staticmethod
    def _unwrap(body: Any) -> Dict[str, Any]:
        """Entity object from a ``{"data": {...}}`` envelope."""
        if isinstance(body, dict):
            data = body.get("data", body)
            if isinstance(data, dict):
                return data
        return {}

    async def create_entity(self, schema: TargetSchema, data: Dict[str, Any], source_id: Optional[str] = None) -> MigrationResult:
        """Create a collection entry, or write a single type."""
        method = "PUT" if schema.is_singleton else "POST"
        path = self.collection_path(schema)

        response = await self._send(method, path, json={"data": data})
        if response.is_error:
            logger.error(f"Strapi API Error ({response.status_code}) on {method} {path}: {response_body(response)}")
        raise_for_rejection(response, f"{method} {path}")

        entity = self._unwrap(response_body(response))
        return MigrationResult(
            record_id=source_id or "",
            target_id=entity.get("id"),
            document_id=entity.get("documentId"),
            success=True,
        )

    async def fetch_entity(self, schema: TargetSchema, document_id: Any) -> Dict[str, Any]:
        path = self.entity_path(schema, document_id)
        response = await self._send("GET", path)
        raise_for_rejection(response, f"GET {path}")
        return self._unwrap(response_body(response))

    async def update_entity(self, schema: TargetSchema, document_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        path = self.entity_path(schema, document_id)
        response = await self._send("PUT", path, json={"data": data})
        raise_for_rejection(response, f"PUT {path}")
        return self._unwrap(response_body(response))

    async def upload_asset(self, file_path: str, entry: AssetEntry) -> Dict[str, Any]:
        """Upload a file through the media library."""
        filename = entry.original_filename or Path(file_path).name
        content_type = entry.mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        content = Path(file_path).read_bytes()

        response = await self._send(
            "POST", UPLOAD_PATH,
            files={"files": (filename, content, content_type)},
        )
        raise_for_rejection(response, f"Upload of {filename}")

        body = response_body(response)
        uploaded = body[0] if isinstance(body, list) and body else self._unwrap(body)
        return {"id": uploaded.get("id"), "url": uploaded.get("url"), "provider": self.provider}

    async def validate_connection(self) -> bool:
        """Validate the connection to the Strapi server."""
        try:
            response = await self._client.get(HEALTH_PATH)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Strapi connection validation failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()

"""Base loader interface for target stores."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import CreateRejectedError
from ..models.record import AssetEntry, MigrationResult
from ..models.target import TargetSchema

logger = logging.getLogger(__name__)


RETRYABLE_STATUS = {429}


def is_retryable(response: httpx.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS or response.status_code >= 500


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    retry_attempts: int = 3,
    retry_delay: float = 1.0,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying transport errors, 429 and 5xx responses.

    The delay doubles after every retry. The last response is returned once
    retries are exhausted; the last transport error is re-raised.

    Args:
        client: HTTP client
        method: HTTP method
        url: Path or absolute URL
        retry_attempts: Retries after the first attempt
        retry_delay: Initial delay in seconds
        **kwargs: Passed to ``client.request``
    """
    def log_retry(state: RetryCallState) -> None:
        outcome = state.outcome
        reason = outcome.exception() if outcome.failed else f"status {outcome.result().status_code}"
        logger.warning(f"{method} {url} failed ({reason}), retry {state.attempt_number}/{retry_attempts}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(retry_attempts + 1),
        wait=wait_exponential(multiplier=retry_delay),
        retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(is_retryable),
        before_sleep=log_retry,
        # Hand back the last response, or re-raise the last transport error
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return await retrying(client.request, method, url, **kwargs)


def response_body(response: httpx.Response) -> Any:
    """Decoded JSON body, or the raw text when it is not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_rejection(response: httpx.Response, action: str) -> None:
    """
    Raises:
        CreateRejectedError: If the response is an error response
    """
    if response.is_error:
        body = response_body(response)
        raise CreateRejectedError(
            f"{action} failed: API Error {response.status_code} - {body}",
            status_code=response.status_code,
            body=body,
        )


class AssetUploader(ABC):
    """Storage provider for migrated asset files."""

    provider: str = ""

    @abstractmethod
    async def upload_asset(self, file_path: str, entry: AssetEntry) -> Dict[str, Any]:
        """
        Upload one file.

        Args:
            file_path: Local path of the exported file
            entry: Asset index entry

        Returns:
            Dict with ``id``, ``url`` and ``provider``
        """

    async def close(self) -> None:
        """Release network resources."""


class BaseLoader(AssetUploader):
    """
    Base class for target stores.

    Loaders create entities, read them back and write merged updates
    during relationship resolution.
    """

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 1.0):
        """
        Initialize the loader.

        Args:
            retry_attempts: Retries for transport errors, 429 and 5xx
            retry_delay: Initial delay between retries in seconds
        """
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @abstractmethod
    async def create_entity(self, schema: TargetSchema, data: Dict[str, Any], source_id: Optional[str] = None) -> MigrationResult:
        """
        Create one entity.

        Raises:
            CreateRejectedError: If the store rejects the entity
        """

    @abstractmethod
    async def fetch_entity(self, schema: TargetSchema, document_id: Any) -> Dict[str, Any]:
        """Read the current representation of an entity."""

    @abstractmethod
    async def update_entity(self, schema: TargetSchema, document_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an entity's writable attributes."""

    async def validate_connection(self) -> bool:
        """Validate the connection to the target store."""
        return True

    async def __aenter__(self) -> "BaseLoader":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

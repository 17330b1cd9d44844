"""
HTTP object storage client adapter.

Talks to a REST object store that exposes objects as
``{base_url}/{bucket}/{name}`` and listings as ``{base_url}/{bucket}``.
"""

import logging
from urllib.parse import quote

import httpx

from .base import BaseStorageClient
from ..exceptions import (
    AuthenticationError,
    ConnectionError,
    InvalidRequestError,
    ObjectNotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
)
from ..retry import RetryPolicy

logger = logging.getLogger(__name__)


class HttpStorageClient(BaseStorageClient):
    """
    Client for an HTTP object store.

    Features:
    - Read, write, delete and list objects
    - Per-attempt timeout enforced by the retry executor
    - Jittered exponential backoff between attempts
    - HTTP statuses mapped to retryable / non-retryable errors
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        retry_policy: RetryPolicy | None = None,
        token: str | None = None,
    ):
        """
        Initialize the HTTP storage client.

        Args:
            base_url: Storage API base URL
            bucket: Bucket all object names are relative to
            retry_policy: Retry policy
            token: Optional bearer token
        """
        super().__init__(bucket, retry_policy)
        self.base_url = base_url.rstrip("/")
        self.token = token

    @property
    def service_name(self) -> str:
        return "HttpStorage"

    def _log_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(
            f"[{self.service_name}] {error}, "
            f"retrying in {delay:.3f}s ({attempt}/{self.retry_policy.max_attempts})"
        )

    def _get_headers(self) -> dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _object_url(self, name: str) -> str:
        return f"{self.base_url}/{quote(self.bucket, safe='')}/{quote(name, safe='')}"

    def _handle_error(self, status_code: int, response_text: str = "", name: str | None = None) -> None:
        """Convert HTTP status codes to domain exceptions."""
        if status_code in (401, 403):
            raise AuthenticationError(
                "Access denied",
                service=self.service_name,
                status_code=status_code,
            )
        elif status_code == 404:
            raise ObjectNotFoundError(
                f"Object not found: {name}" if name else "Object not found",
                name=name,
                service=self.service_name,
                status_code=status_code,
            )
        elif status_code == 408:
            raise TimeoutError(
                "Server timed out waiting for the request",
                service=self.service_name,
                status_code=status_code,
            )
        elif status_code == 429:
            raise RateLimitError(
                "Rate limit exceeded",
                service=self.service_name,
                status_code=status_code,
            )
        elif status_code >= 500:
            raise ServerError(
                f"Server error: {response_text}",
                service=self.service_name,
                status_code=status_code,
            )
        elif status_code >= 400:
            raise InvalidRequestError(
                f"Invalid request: {response_text}",
                service=self.service_name,
                status_code=status_code,
            )

    async def _request(
        self,
        method: str,
        url: str,
        name: str | None = None,
        headers: dict | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Send one request; this is the unit of work the executor retries."""
        request_headers = self._get_headers()
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    headers=request_headers,
                    **kwargs,
                )
        except httpx.ConnectError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                service=self.service_name,
            ) from e
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Request timed out after {self.timeout}s",
                service=self.service_name,
            ) from e

        if response.status_code >= 400:
            self._handle_error(response.status_code, response.text, name)
        return response

    async def read_object(self, name: str) -> bytes:
        """Read an object's content with retry."""
        url = self._object_url(name)
        response = await self._with_retry(lambda: self._request("GET", url, name))
        return response.content

    async def write_object(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """Create or replace an object with retry."""
        url = self._object_url(name)
        await self._with_retry(
            lambda: self._request(
                "PUT",
                url,
                name,
                content=data,
                headers={"Content-Type": content_type},
            )
        )
        logger.info(f"[{self.service_name}] Wrote {len(data)} bytes to {self.bucket}/{name}")

    async def delete_object(self, name: str) -> None:
        """Delete an object with retry."""
        url = self._object_url(name)
        await self._with_retry(lambda: self._request("DELETE", url, name))

    async def list_objects(self, prefix: str | None = None) -> list[dict]:
        """List objects in the bucket with retry."""
        url = f"{self.base_url}/{quote(self.bucket, safe='')}"
        params = {"prefix": prefix} if prefix else None
        response = await self._with_retry(lambda: self._request("GET", url, params=params))
        data = response.json()
        return data.get("items", [])

    async def health_check(self) -> bool:
        """Check if the storage API is accessible (single attempt, no retry)."""
        try:
            await self._request("GET", f"{self.base_url}/{quote(self.bucket, safe='')}")
            return True
        except Exception as e:
            logger.debug(f"[{self.service_name}] Health check failed: {e}")
            return False

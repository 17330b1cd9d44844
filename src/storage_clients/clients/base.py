"""
Base storage client interface.

Defines the common interface that all storage client adapters must implement.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from ..retry import RetryExecutor, RetryPolicy

T = TypeVar("T")


class BaseStorageClient(ABC):
    """
    Abstract base class for storage clients.

    All storage adapters must implement this interface. Every request is
    one unit of work driven by the client's retry executor.
    """

    def __init__(
        self,
        bucket: str,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize the client.

        Args:
            bucket: Bucket (container) all object names are relative to
            retry_policy: Retry policy for failed requests
        """
        self.bucket = bucket
        self.retry_policy = retry_policy or RetryPolicy()
        self._executor = RetryExecutor(self.retry_policy, on_retry=self._log_retry)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Return the service name for logging."""
        ...

    @property
    def timeout(self) -> float:
        """Per-request timeout, taken from the retry policy."""
        return self.retry_policy.request_timeout

    def _log_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        """Hook for subclasses; called before each retry."""

    async def _with_retry(self, work: Callable[[], Awaitable[T]]) -> T:
        return await self._executor.execute(work)

    @abstractmethod
    async def read_object(self, name: str) -> bytes:
        """
        Read an object's content.

        Args:
            name: Object name within the bucket

        Returns:
            The object's bytes
        """
        ...

    @abstractmethod
    async def write_object(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """
        Create or replace an object.

        Args:
            name: Object name within the bucket
            data: Object content
            content_type: MIME type stored with the object
        """
        ...

    @abstractmethod
    async def delete_object(self, name: str) -> None:
        """Delete an object."""
        ...

    @abstractmethod
    async def list_objects(self, prefix: str | None = None) -> list[dict]:
        """
        List objects in the bucket.

        Args:
            prefix: Only return objects whose name starts with this prefix

        Returns:
            List of object metadata dictionaries
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the service is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...

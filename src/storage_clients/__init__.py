"""
Storage Clients - Retry/backoff policy engine for storage clients.

Immutable retry policies, jittered exponential backoff, a retry executor with
per-attempt timeouts, and an HTTP object storage client built on top of it.
"""

from .clients import BaseStorageClient, HttpStorageClient
from .exceptions import (
    StorageClientError,
    InvalidPolicyError,
    RetryableError,
    NonRetryableError,
    AttemptTimeoutError,
    RateLimitError,
    ConnectionError,
    TimeoutError,
    AuthenticationError,
    ObjectNotFoundError,
    InvalidRequestError,
    ServerError,
    RetryOutcome,
    RetryError,
    RetryExhaustedError,
    RetryAbortedError,
    RetryCancelledError,
)
from .retry import (
    RetryPolicy,
    RetryExecutor,
    AttemptOutcome,
    AttemptRecord,
    calculate_backoff,
    should_stop,
    execute,
    with_retry,
    async_with_retry,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Clients
    "BaseStorageClient",
    "HttpStorageClient",
    # Exceptions
    "StorageClientError",
    "InvalidPolicyError",
    "RetryableError",
    "NonRetryableError",
    "AttemptTimeoutError",
    "RateLimitError",
    "ConnectionError",
    "TimeoutError",
    "AuthenticationError",
    "ObjectNotFoundError",
    "InvalidRequestError",
    "ServerError",
    "RetryOutcome",
    "RetryError",
    "RetryExhaustedError",
    "RetryAbortedError",
    "RetryCancelledError",
    # Retry
    "RetryPolicy",
    "RetryExecutor",
    "AttemptOutcome",
    "AttemptRecord",
    "calculate_backoff",
    "should_stop",
    "execute",
    "with_retry",
    "async_with_retry",
]

"""
Storage Clients - Exception Hierarchy.

Custom exceptions for storage client operations with retry-awareness.
"""

from .base import (
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
    is_retryable,
)
from .retry import (
    RetryOutcome,
    RetryError,
    RetryExhaustedError,
    RetryAbortedError,
    RetryCancelledError,
)

__all__ = [
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
    "is_retryable",
    "RetryOutcome",
    "RetryError",
    "RetryExhaustedError",
    "RetryAbortedError",
    "RetryCancelledError",
]

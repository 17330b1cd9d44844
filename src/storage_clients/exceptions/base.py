"""
Base exception classes for storage client operations.

Each exception includes a `retryable` flag indicating whether the operation
can be safely retried with the same parameters. The retry executor reads
only this flag to classify a failure.
"""


class StorageClientError(Exception):
    """Base exception for all storage client errors."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        status_code: int | None = None,
        service: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        self.service = service

    def __str__(self) -> str:
        parts = [self.message]
        if self.service:
            parts.insert(0, f"[{self.service}]")
        if self.status_code:
            parts.append(f"(status: {self.status_code})")
        return " ".join(parts)


class InvalidPolicyError(StorageClientError):
    """Raised when a retry policy is malformed. Never retried."""

    def __init__(self, message: str = "Invalid retry policy", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class RetryableError(StorageClientError):
    """Raised by a unit of work to request another attempt."""

    def __init__(self, message: str = "Retryable failure", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


class NonRetryableError(StorageClientError):
    """Raised by a unit of work to stop the retry sequence immediately."""

    def __init__(self, message: str = "Non-retryable failure", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class AttemptTimeoutError(StorageClientError):
    """An attempt did not finish within the request timeout. Always retryable."""

    def __init__(
        self,
        message: str | None = None,
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        if message is None:
            message = (
                f"Attempt timed out after {timeout}s"
                if timeout is not None
                else "Attempt timed out"
            )
        super().__init__(message, retryable=True, **kwargs)
        self.timeout = timeout


class RateLimitError(StorageClientError):
    """Raised when rate limit is exceeded. Always retryable."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, retryable=True, **kwargs)
        self.retry_after = retry_after


class ConnectionError(StorageClientError):
    """Raised when connection to the storage service fails. Usually retryable."""

    def __init__(self, message: str = "Connection failed", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


class TimeoutError(StorageClientError):
    """Raised when the transport reports a timeout. Usually retryable."""

    def __init__(self, message: str = "Request timed out", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


class AuthenticationError(StorageClientError):
    """Raised when authentication or authorization fails. Not retryable."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class ObjectNotFoundError(StorageClientError):
    """Raised when the requested object does not exist. Not retryable."""

    def __init__(self, message: str = "Object not found", name: str | None = None, **kwargs):
        super().__init__(message, retryable=False, **kwargs)
        self.name = name


class InvalidRequestError(StorageClientError):
    """Raised when the request is malformed. Not retryable."""

    def __init__(self, message: str = "Invalid request", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class ServerError(StorageClientError):
    """Raised when the server returns a 5xx error. Usually retryable."""

    def __init__(self, message: str = "Server error", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


def is_retryable(error: BaseException) -> bool:
    """Return True if the error asks to be retried."""
    return bool(getattr(error, "retryable", False))

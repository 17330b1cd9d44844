"""
Terminal failures of a retry sequence.

Every retry invocation that does not succeed ends in exactly one of these.
They carry the last underlying failure plus attempt/time telemetry and are
chained (``__cause__``) from that failure.
"""

from enum import Enum
from typing import Any, Sequence

from .base import StorageClientError


class RetryOutcome(str, Enum):
    """Why a retry sequence ended without success."""

    EXHAUSTED = "exhausted"
    NON_RETRYABLE = "non_retryable"
    CANCELLED = "cancelled"


class RetryError(StorageClientError):
    """Base exception for unsuccessful retry sequences."""

    outcome: RetryOutcome

    def __init__(
        self,
        message: str,
        *,
        last_error: BaseException | None = None,
        attempts: int = 0,
        elapsed: float = 0.0,
        history: Sequence[Any] = (),
        **kwargs,
    ):
        super().__init__(message, retryable=False, **kwargs)
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed = elapsed
        self.history = tuple(history)

    def __str__(self) -> str:
        text = super().__str__()
        return f"{text} after {self.attempts} attempt(s) in {self.elapsed:.3f}s"


class RetryExhaustedError(RetryError):
    """The stopping rule ended the sequence before any attempt succeeded."""

    outcome = RetryOutcome.EXHAUSTED

    def __init__(self, message: str = "Retry budget exhausted", **kwargs):
        super().__init__(message, **kwargs)


class RetryAbortedError(RetryError):
    """An attempt failed with a non-retryable error."""

    outcome = RetryOutcome.NON_RETRYABLE

    def __init__(self, message: str = "Non-retryable failure", **kwargs):
        super().__init__(message, **kwargs)


class RetryCancelledError(RetryError):
    """A cancel signal interrupted an attempt or an inter-attempt delay."""

    outcome = RetryOutcome.CANCELLED

    def __init__(self, message: str = "Retry cancelled", **kwargs):
        super().__init__(message, **kwargs)

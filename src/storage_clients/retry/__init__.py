"""
Storage Clients - Retry Logic.

Retry policies, jittered exponential backoff and the retry executor.
"""

from .config import RetryPolicy
from .backoff import RandomSource, calculate_backoff, delay_bounds, should_stop
from .state import AttemptOutcome, AttemptRecord, RetryState
from .executor import RetryExecutor, execute, with_retry, async_with_retry

__all__ = [
    "RetryPolicy",
    "RandomSource",
    "calculate_backoff",
    "delay_bounds",
    "should_stop",
    "AttemptOutcome",
    "AttemptRecord",
    "RetryState",
    "RetryExecutor",
    "execute",
    "with_retry",
    "async_with_retry",
]

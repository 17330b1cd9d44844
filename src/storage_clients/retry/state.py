"""
Per-invocation bookkeeping for a retry sequence.
"""

from dataclasses import dataclass, field
from enum import Enum


class AttemptOutcome(str, Enum):
    """How a single attempt ended."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AttemptRecord:
    """One attempt of a retry sequence."""

    index: int
    started_at: float
    outcome: AttemptOutcome
    error: BaseException | None = None
    delay: float | None = None


@dataclass
class RetryState:
    """
    Mutable state owned by exactly one executor invocation.

    Never stored on the policy, so one policy can drive any number of
    concurrent sequences.
    """

    started_at: float
    attempts: int = 0
    consecutive_failures: int = 0
    last_delay: float | None = None
    history: list[AttemptRecord] = field(default_factory=list)

    def record(
        self,
        started_at: float,
        outcome: AttemptOutcome,
        error: BaseException | None = None,
        delay: float | None = None,
    ) -> AttemptRecord:
        entry = AttemptRecord(
            index=self.attempts,
            started_at=started_at,
            outcome=outcome,
            error=error,
            delay=delay,
        )
        self.history.append(entry)
        if delay is not None:
            self.last_delay = delay
        return entry

"""
Backoff calculation and the stopping rule.

Pure functions: no clocks are read here and randomness comes from the
caller-supplied source, so a deterministic source gives exact delays.
"""

import random
from typing import Protocol

from .config import RetryPolicy


class RandomSource(Protocol):
    """Anything with a ``uniform(a, b)`` method, e.g. ``random.Random``."""

    def uniform(self, a: float, b: float) -> float: ...


def delay_bounds(failures: int, policy: RetryPolicy) -> tuple[float, float]:
    """
    Return the interval a delay is drawn from after `failures` consecutive failures.

    Args:
        failures: Consecutive failure count, starting at 1
        policy: Retry policy

    Returns:
        ``(capped / 2, capped)`` where ``capped`` is the exponential term
        limited to ``policy.max_delay``
    """
    if failures < 1:
        raise ValueError(f"failures must be >= 1, got {failures}")

    if policy.initial_delay == 0:
        return 0.0, 0.0

    try:
        raw = policy.initial_delay * (policy.backoff_factor ** (failures - 1))
    except OverflowError:
        raw = float("inf")

    capped = min(raw, policy.max_delay)
    return capped / 2, capped


def calculate_backoff(
    failures: int,
    policy: RetryPolicy,
    rng: RandomSource | None = None,
) -> float:
    """
    Calculate the delay before the next attempt.

    Args:
        failures: Consecutive failure count, starting at 1
        policy: Retry policy
        rng: Random source (default: the `random` module)

    Returns:
        Delay in seconds with jitter applied
    """
    low, high = delay_bounds(failures, policy)
    if high == 0:
        return 0.0
    source = rng if rng is not None else random
    return source.uniform(low, high)


def should_stop(attempts: int, elapsed: float, policy: RetryPolicy) -> bool:
    """
    Decide whether a failing sequence ends here.

    `max_attempts` is an absolute ceiling. The retry period only ends the
    sequence once `min_attempts` have been made.
    """
    if attempts >= policy.max_attempts:
        return True
    return attempts >= policy.min_attempts and elapsed >= policy.retry_period

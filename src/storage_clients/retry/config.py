"""
Retry policy definition.

A policy is an immutable, validated bundle of the seven parameters that shape
a retry sequence. All durations are in seconds.
"""

import math
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping

from ..exceptions import InvalidPolicyError

_DURATION_FIELDS = ("request_timeout", "initial_delay", "max_delay", "retry_period")
_ATTEMPT_FIELDS = ("min_attempts", "max_attempts")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for retry behavior.

    The first attempt runs immediately and is given `request_timeout` to
    complete or it is regarded as a failure. After the n-th consecutive
    failure the executor sleeps for at least half of and no more than
    ``min(initial_delay * backoff_factor ** (n - 1), max_delay)``. This
    proceeds until an attempt succeeds, `max_attempts` are made, or both
    `min_attempts` are made and `retry_period` has elapsed since the first
    attempt started.

    Attributes:
        request_timeout: Time allowed for one attempt (default: 5.0)
        min_attempts: Attempts made before the retry period may stop retries (default: 5)
        max_attempts: Hard upper bound on attempts (default: 10)
        initial_delay: Delay after the first failure (default: 0.01)
        max_delay: Ceiling on any computed delay (default: 10.0)
        backoff_factor: Growth rate per additional failure (default: 2.0)
        retry_period: Time since the first attempt during which retries continue (default: 30.0)
    """

    request_timeout: float = 5.0
    min_attempts: int = 5
    max_attempts: int = 10
    initial_delay: float = 0.01
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    retry_period: float = 30.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise InvalidPolicyError if the parameters are inconsistent."""
        for name in _ATTEMPT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidPolicyError(f"{name} must be an integer, got {value!r}")

        for name in _DURATION_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidPolicyError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise InvalidPolicyError(
                    f"{name} must be a finite non-negative number, got {value!r}"
                )

        if self.max_attempts < 1:
            raise InvalidPolicyError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.min_attempts < 0:
            raise InvalidPolicyError(
                f"min_attempts must be non-negative, got {self.min_attempts}"
            )
        if self.min_attempts > self.max_attempts:
            raise InvalidPolicyError(
                f"min_attempts ({self.min_attempts}) exceeds "
                f"max_attempts ({self.max_attempts})"
            )

        factor = self.backoff_factor
        if isinstance(factor, bool) or not isinstance(factor, (int, float)):
            raise InvalidPolicyError(f"backoff_factor must be a number, got {factor!r}")
        if not math.isfinite(factor) or factor < 1:
            raise InvalidPolicyError(f"backoff_factor must be finite and >= 1, got {factor!r}")

    def replace(self, **changes: Any) -> "RetryPolicy":
        """Return a validated copy with the given fields changed."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary keyed by field name."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "RetryPolicy":
        """
        Build a policy from a mapping of field names to values.

        Unknown keys are ignored and missing keys keep their defaults.
        Numeric strings are accepted, so values read from environment
        variables or config files can be passed through unchanged.

        Raises:
            InvalidPolicyError: If a value cannot be coerced or the resulting
                policy is inconsistent.
        """
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in config or config[f.name] is None:
                continue
            raw = config[f.name]
            if isinstance(raw, bool):
                raise InvalidPolicyError(f"{f.name} is not a number: {raw!r}")
            try:
                number = float(raw)
            except (TypeError, ValueError) as e:
                raise InvalidPolicyError(f"{f.name} is not a number: {raw!r}") from e

            if f.name in _ATTEMPT_FIELDS:
                if not number.is_integer():
                    raise InvalidPolicyError(f"{f.name} must be a whole number, got {raw!r}")
                values[f.name] = int(number)
            else:
                values[f.name] = number
        return cls(**values)

    @classmethod
    def from_env(
        cls,
        prefix: str = "STORAGE_RETRY_",
        environ: Mapping[str, str] | None = None,
    ) -> "RetryPolicy":
        """
        Build a policy from environment variables.

        Each field is read from ``<prefix><FIELD_NAME>``, for example
        ``STORAGE_RETRY_MAX_ATTEMPTS``.
        """
        if environ is None:
            environ = os.environ
        config = {}
        for f in fields(cls):
            key = f"{prefix}{f.name.upper()}"
            if key in environ:
                config[f.name] = environ[key]
        return cls.from_dict(config)

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        """Preset for aggressive retry (more attempts, longer window)."""
        return cls(
            min_attempts=10,
            max_attempts=20,
            initial_delay=0.1,
            max_delay=30.0,
            retry_period=120.0,
        )

    @classmethod
    def conservative(cls) -> "RetryPolicy":
        """Preset for conservative retry (fewer attempts, shorter window)."""
        return cls(
            min_attempts=2,
            max_attempts=3,
            initial_delay=0.05,
            max_delay=1.0,
            retry_period=5.0,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        """Preset for no retry (single attempt only)."""
        return cls(min_attempts=1, max_attempts=1)

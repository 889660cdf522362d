"""Retry policy and poll specification value objects."""

from dataclasses import dataclass
from typing import Literal

from cpjoin.domain.exceptions import CPJoinConfigError


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for a single orchestration stage.

    Value object encapsulating how many times a stage may be retried and
    how long to wait between attempts. The total number of attempts is
    always ``max_retries + 1``, so every stage using a policy terminates.

    Attributes:
        max_retries: Maximum number of retry attempts. 0 means no retries.
                    Must be non-negative.
        backoff_base: Base delay in seconds. Must be positive.
        max_backoff: Upper bound on any single delay. Must be positive.
        strategy: How the delay grows with the attempt number:
                  - "fixed": backoff_base
                  - "linear": backoff_base * (attempt + 1)
                  - "exponential": backoff_base * 2^attempt
    """

    max_retries: int = 3
    backoff_base: float = 1.0
    max_backoff: float = 30.0
    strategy: Literal["fixed", "linear", "exponential"] = "exponential"

    def __post_init__(self) -> None:
        """Validate retry policy configuration."""
        self._validate_max_retries()
        self._validate_backoff_base()
        self._validate_max_backoff()
        self._validate_strategy()

    def _validate_max_retries(self) -> None:
        """Validate max_retries is non-negative."""
        if self.max_retries < 0:
            raise CPJoinConfigError("max_retries cannot be negative")

    def _validate_backoff_base(self) -> None:
        """Validate backoff_base is positive."""
        if self.backoff_base <= 0:
            raise CPJoinConfigError("backoff_base must be positive")

    def _validate_max_backoff(self) -> None:
        """Validate max_backoff is positive."""
        if self.max_backoff <= 0:
            raise CPJoinConfigError("max_backoff must be positive")

    def _validate_strategy(self) -> None:
        if self.strategy not in ("fixed", "linear", "exponential"):
            raise CPJoinConfigError(
                f"strategy must be 'fixed', 'linear' or 'exponential', got: {self.strategy!r}"
            )

    @property
    def max_attempts(self) -> int:
        """Total attempts allowed, the first try included."""
        return self.max_retries + 1

    def calculate_backoff(self, attempt: int) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: The attempt number that just failed (0-indexed).

        Returns:
            Delay in seconds before the next attempt, capped at max_backoff.
        """
        if self.strategy == "fixed":
            delay = self.backoff_base
        elif self.strategy == "linear":
            delay = self.backoff_base * (attempt + 1)
        else:
            delay = self.backoff_base * (2**attempt)
        return float(min(delay, self.max_backoff))

    def should_retry(self, attempt: int) -> bool:
        """Determine if another attempt may follow the given one.

        Args:
            attempt: The attempt number that just failed (0-indexed).

        Returns:
            True if attempt < max_retries, False otherwise.
        """
        return attempt < self.max_retries


@dataclass(frozen=True)
class PollSpec:
    """Interval and hard ceiling for a bounded poll.

    Attributes:
        interval: Seconds between probes. Must be positive.
        ceiling: Maximum seconds to keep polling. Must be at least interval.
    """

    interval: float
    ceiling: float

    def __post_init__(self) -> None:
        """Validate poll specification."""
        if self.interval <= 0:
            raise CPJoinConfigError("poll interval must be positive")

        if self.ceiling < self.interval:
            raise CPJoinConfigError(
                f"poll ceiling ({self.ceiling}s) cannot be shorter than interval ({self.interval}s)"
            )

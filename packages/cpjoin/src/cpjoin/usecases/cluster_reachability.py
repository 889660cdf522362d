"""ClusterReachabilityChecker use case for the pre-join health poll."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from cpjoin.adapters.ports import (
    ClusterHealthPort,
    LoggingPort,
    RealSleeper,
    RealTimeProvider,
    SleeperPort,
    TimeProvider,
)
from cpjoin.domain.exceptions import CPJoinError
from cpjoin.domain.retry import RetryPolicy
from cpjoin.usecases.bounded_poller import BoundedPoller


@dataclass(frozen=True)
class ReachabilityResult:
    """Outcome of the health poll.

    Attributes:
        reachable: True if a probe answered healthy.
        attempts: Probes made.
        elapsed: Seconds spent polling.
        cancelled: True if the poll was cancelled.
        last_error: Last probe error, if any probe raised.
    """

    reachable: bool
    attempts: int
    elapsed: float
    cancelled: bool = False
    last_error: str | None = None


class ClusterReachabilityChecker:
    """Probes the cluster health endpoint through the VIP.

    Unreachability is treated as transient: the probe is retried a small
    fixed number of times before the result reports failure.
    """

    def __init__(
        self,
        health: ClusterHealthPort,
        retry_policy: RetryPolicy | None = None,
        time_provider: TimeProvider | None = None,
        sleeper: SleeperPort | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        self._health = health
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=3, backoff_base=5.0, max_backoff=5.0, strategy="fixed"
        )
        self._poller = BoundedPoller(
            time_provider or RealTimeProvider(), sleeper or RealSleeper()
        )
        self._logger = logger

    def check(self, should_stop: Callable[[], bool] | None = None) -> ReachabilityResult:
        """Probe until healthy or the retry budget is spent."""
        errors: list[str] = []
        attempts = 0

        def probe() -> bool:
            nonlocal attempts
            attempts += 1
            try:
                if self._health.healthz():
                    return True
            except CPJoinError as e:
                errors.append(str(e))

            if self._logger is not None:
                self._logger.warning(
                    f"cluster health probe {attempts}/"
                    f"{self._retry_policy.max_attempts} failed"
                )
            return False

        outcome = self._poller.retry(probe, self._retry_policy, should_stop)
        return ReachabilityResult(
            reachable=outcome.satisfied,
            attempts=outcome.attempts,
            elapsed=outcome.elapsed,
            cancelled=outcome.cancelled,
            last_error=errors[-1] if errors and not outcome.satisfied else None,
        )

"""Bounded poll primitive shared by every waiting stage."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from cpjoin.adapters.ports import (
    RealSleeper,
    RealTimeProvider,
    SleeperPort,
    TimeProvider,
)
from cpjoin.domain.retry import PollSpec, RetryPolicy


@dataclass(frozen=True)
class PollOutcome:
    """Result of a bounded poll.

    Attributes:
        satisfied: True if the probe returned True before the ceiling.
        attempts: Number of probe calls made.
        elapsed: Seconds between the first probe and the outcome.
        cancelled: True if should_stop ended the poll early.
    """

    satisfied: bool
    attempts: int
    elapsed: float
    cancelled: bool = False

    @property
    def timed_out(self) -> bool:
        return not self.satisfied and not self.cancelled


class BoundedPoller:
    """Calls a probe at a fixed interval until it succeeds or a ceiling passes.

    The probe runs immediately, then after every interval. The last sleep
    is shortened so no probe is scheduled past the ceiling, which makes the
    number of probes at most ``ceiling / interval + 1``. Cancellation is
    checked before every probe.

    ``retry`` drives the same loop from a RetryPolicy, for probes whose
    budget is a number of attempts with backoff rather than a ceiling.
    """

    def __init__(
        self,
        time_provider: TimeProvider | None = None,
        sleeper: SleeperPort | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            time_provider: Clock for elapsed time. Defaults to system time.
            sleeper: Waits between probes. Defaults to time.sleep.
        """
        self._time_provider = time_provider or RealTimeProvider()
        self._sleeper = sleeper or RealSleeper()

    def poll(
        self,
        probe: Callable[[], bool],
        spec: PollSpec,
        should_stop: Callable[[], bool] | None = None,
    ) -> PollOutcome:
        """Poll until probe() is True, the ceiling passes or should_stop().

        Exceptions raised by the probe propagate; probes that tolerate
        transient errors must catch them and return False.

        Args:
            probe: Predicate checked once per interval.
            spec: Interval and ceiling.
            should_stop: Optional cancellation check.

        Returns:
            PollOutcome describing how the poll ended.
        """
        start = self._time_provider.get_time_seconds()
        attempts = 0

        while True:
            elapsed = self._time_provider.get_time_seconds() - start
            if should_stop is not None and should_stop():
                return PollOutcome(False, attempts, elapsed, cancelled=True)

            attempts += 1
            if probe():
                elapsed = self._time_provider.get_time_seconds() - start
                return PollOutcome(True, attempts, elapsed)

            elapsed = self._time_provider.get_time_seconds() - start
            remaining = spec.ceiling - elapsed
            if remaining <= 0:
                return PollOutcome(False, attempts, elapsed)

            self._sleeper.sleep(min(spec.interval, remaining))

    def retry(
        self,
        probe: Callable[[], bool],
        policy: RetryPolicy,
        should_stop: Callable[[], bool] | None = None,
    ) -> PollOutcome:
        """Poll with the delays of a retry policy instead of a fixed interval.

        The probe runs at most ``policy.max_attempts`` times and waits
        ``policy.calculate_backoff(attempt)`` after each failed attempt.
        Cancellation is checked before every probe.

        Args:
            probe: Predicate checked once per attempt.
            policy: Attempt budget and backoff.
            should_stop: Optional cancellation check.

        Returns:
            PollOutcome describing how the poll ended.
        """
        start = self._time_provider.get_time_seconds()
        attempt = 0

        while True:
            if should_stop is not None and should_stop():
                elapsed = self._time_provider.get_time_seconds() - start
                return PollOutcome(False, attempt, elapsed, cancelled=True)

            satisfied = probe()
            elapsed = self._time_provider.get_time_seconds() - start
            if satisfied:
                return PollOutcome(True, attempt + 1, elapsed)
            if not policy.should_retry(attempt):
                return PollOutcome(False, attempt + 1, elapsed)

            self._sleeper.sleep(policy.calculate_backoff(attempt))
            attempt += 1

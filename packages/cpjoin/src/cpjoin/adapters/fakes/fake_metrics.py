"""Fake metrics adapter for testing.

Provides a test double for MetricsPort that records all metric updates
for assertion in tests.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class MetricCall:
    """Record of a single metric update.

    Attributes:
        metric_name: Name of the metric that was updated.
        value: Value that was set.
    """

    metric_name: str
    value: float | int | bool | str


class FakeMetricsAdapter:
    """Fake implementation of MetricsPort for testing.

    Records all metric updates for later assertion and keeps the last value
    of every gauge.

    Example:
        >>> fake = FakeMetricsAdapter()
        >>> fake.set_vip_owned(True)
        >>> fake.current("vip_owned")
        True
        >>> fake.calls
        [MetricCall(metric_name='vip_owned', value=True)]
    """

    def __init__(self) -> None:
        """Initialize with no recorded state."""
        self._current: dict[str, float | int | bool | str] = {}
        self._calls: list[MetricCall] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> list[MetricCall]:
        """Return list of all metric update calls.

        Returns a copy to prevent external modification.
        """
        with self._lock:
            return list(self._calls)

    def current(self, metric_name: str) -> float | int | bool | str | None:
        """Return last value set for metric_name, or None if never set."""
        with self._lock:
            return self._current.get(metric_name)

    def values(self, metric_name: str) -> list[float | int | bool | str]:
        """Return every value set for metric_name, in order."""
        return [call.value for call in self.calls if call.metric_name == metric_name]

    def _record(self, metric_name: str, value: float | int | bool | str) -> None:
        with self._lock:
            self._current[metric_name] = value
            self._calls.append(MetricCall(metric_name, value))

    def set_join_stage(self, stage: str) -> None:
        self._record("join_stage", stage)

    def set_join_failed(self, failed: bool) -> None:
        self._record("join_failed", failed)

    def set_vip_owned(self, owned: bool) -> None:
        self._record("vip_owned", owned)

    def set_load_balancer_bound(self, bound: bool) -> None:
        self._record("load_balancer_bound", bound)

    def set_promotion_attempts(self, attempts: int) -> None:
        self._record("promotion_attempts", attempts)

    def reset(self) -> None:
        """Clear both the calls list and all current values."""
        with self._lock:
            self._current.clear()
            self._calls.clear()

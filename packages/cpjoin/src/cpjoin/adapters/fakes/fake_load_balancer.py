"""Fake load balancer control for testing."""

from __future__ import annotations

import threading

from cpjoin.domain.exceptions import LoadBalancerControlError


class FakeLoadBalancer:
    """Fake implementation of LoadBalancerControlPort for testing.

    Idempotent like the real adapter: enabling a bound load balancer or
    disabling an unbound one succeeds and leaves the state unchanged.
    Records every call for assertion in tests.
    """

    def __init__(self, bound: bool = False) -> None:
        self._bound = bound
        self._failures_left = 0
        self._calls: list[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> list[str]:
        """Return "enable" / "disable" in call order."""
        with self._lock:
            return list(self._calls)

    def fail_next(self, count: int) -> None:
        """Make the next ``count`` enable/disable calls raise."""
        with self._lock:
            self._failures_left = count

    def _maybe_fail(self, action: str) -> None:
        if self._failures_left > 0:
            self._failures_left -= 1
            raise LoadBalancerControlError(f"systemctl {action} haproxy failed")

    def enable_and_bind(self) -> None:
        with self._lock:
            self._calls.append("enable")
            self._maybe_fail("enable")
            self._bound = True

    def disable_and_unbind(self) -> None:
        with self._lock:
            self._calls.append("disable")
            self._maybe_fail("disable")
            self._bound = False

    def is_bound(self) -> bool:
        with self._lock:
            return self._bound

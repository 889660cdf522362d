"""Fake failover daemon state for testing."""

from __future__ import annotations

import threading

from cpjoin.domain.exceptions import CommandExecutionError


class FakeFailoverState:
    """Fake implementation of FailoverStatePort for testing.

    Holds the set of addresses currently assigned to the fake node. Tests
    move the VIP by calling assign() and release().
    """

    def __init__(self, addresses: set[str] | None = None) -> None:
        self._addresses = set(addresses or ())
        self._error: str | None = None
        self._reads = 0
        self._lock = threading.Lock()

    @property
    def reads(self) -> int:
        """Number of holds_address() calls so far."""
        with self._lock:
            return self._reads

    def assign(self, address: str) -> None:
        with self._lock:
            self._addresses.add(address)

    def release(self, address: str) -> None:
        with self._lock:
            self._addresses.discard(address)

    def fail_reads(self, message: str | None = "ip: cannot open netlink socket") -> None:
        """Make holds_address() raise, or pass None to restore reads."""
        with self._lock:
            self._error = message

    def holds_address(self, address: str) -> bool:
        with self._lock:
            self._reads += 1
            if self._error is not None:
                raise CommandExecutionError(
                    self._error, args_=("ip", "-o", "addr", "show")
                )
            return address in self._addresses

"""Fake API server bind probe for testing."""

from __future__ import annotations


class FakeApiServerBind:
    """Fake implementation of ApiServerBindPort returning a fixed answer."""

    def __init__(self, binds_all_interfaces: bool = True) -> None:
        self.binds_all = binds_all_interfaces
        self.probes = 0

    def binds_all_interfaces(self) -> bool:
        self.probes += 1
        return self.binds_all

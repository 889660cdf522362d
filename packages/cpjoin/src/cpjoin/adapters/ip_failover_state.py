"""FailoverStatePort implementation reading ``ip -o addr show``."""

from __future__ import annotations

import ipaddress

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.ports import CommandRunnerPort, FailoverStatePort


class IpAddrFailoverState:
    """Reports whether the failover daemon assigned an address locally.

    keepalived adds the VIP as a secondary address on the MASTER node, so
    presence of the address on a local interface is the ownership signal.
    """

    def __init__(
        self,
        runner: CommandRunnerPort,
        interface: str | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Initialize the adapter.

        Args:
            runner: Command runner used to invoke ``ip``.
            interface: Restrict the lookup to one interface, or None for all.
            timeout: Seconds before the ``ip`` call is abandoned.
        """
        self._runner = runner
        self._interface = interface
        self._timeout = timeout

    def holds_address(self, address: str) -> bool:
        """Check whether address is assigned to a local interface.

        Raises:
            CommandExecutionError: If ``ip`` fails.
        """
        args = ["ip", "-o", "addr", "show"]
        if self._interface:
            args += ["dev", self._interface]
        result = run_checked(self._runner, args, timeout=self._timeout)

        wanted = ipaddress.ip_address(address)
        return wanted in set(self._assigned_addresses(result.stdout))

    @staticmethod
    def _assigned_addresses(output: str) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
        addresses = []
        for line in output.splitlines():
            tokens = line.split()
            for position, token in enumerate(tokens[:-1]):
                if token in ("inet", "inet6"):
                    cidr = tokens[position + 1]
                    try:
                        addresses.append(ipaddress.ip_interface(cidr).ip)
                    except ValueError:
                        continue
        return addresses


# Runtime protocol check
assert isinstance(IpAddrFailoverState(SubprocessCommandRunner()), FailoverStatePort)

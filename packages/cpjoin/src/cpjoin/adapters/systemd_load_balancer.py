"""systemd-based implementation of the LoadBalancerControlPort."""

from __future__ import annotations

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.ports import CommandRunnerPort, LoadBalancerControlPort
from cpjoin.domain.exceptions import CommandExecutionError, LoadBalancerControlError


class SystemdLoadBalancerControl:
    """Starts and stops the local load balancer unit with systemctl.

    ``systemctl enable --now`` and ``disable --now`` succeed when the unit
    is already in the requested state, which makes both operations
    idempotent.
    """

    def __init__(
        self,
        runner: CommandRunnerPort,
        service: str = "haproxy",
        timeout: float = 30.0,
    ) -> None:
        """Initialize the adapter.

        Args:
            runner: Command runner used to invoke systemctl.
            service: Load balancer unit name.
            timeout: Seconds before a systemctl call is abandoned.
        """
        self._runner = runner
        self._service = service
        self._timeout = timeout

    def enable_and_bind(self) -> None:
        """Enable and start the unit.

        Raises:
            LoadBalancerControlError: If systemctl fails.
        """
        self._systemctl("enable", "--now", self._service)

    def disable_and_unbind(self) -> None:
        """Disable and stop the unit.

        Raises:
            LoadBalancerControlError: If systemctl fails.
        """
        self._systemctl("disable", "--now", self._service)

    def is_bound(self) -> bool:
        """Report whether the unit is active."""
        result = self._runner.run(
            ["systemctl", "is-active", "--quiet", self._service],
            timeout=self._timeout,
        )
        return result.ok

    def _systemctl(self, *args: str) -> None:
        try:
            run_checked(self._runner, ["systemctl", *args], timeout=self._timeout)
        except CommandExecutionError as e:
            raise LoadBalancerControlError(
                f"systemctl {' '.join(args)} failed: {e.message}"
            ) from e


# Runtime protocol check
assert isinstance(
    SystemdLoadBalancerControl(SubprocessCommandRunner()), LoadBalancerControlPort
)

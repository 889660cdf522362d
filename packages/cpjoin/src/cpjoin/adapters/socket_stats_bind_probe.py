"""ApiServerBindPort implementation reading ``ss`` listening sockets."""

from __future__ import annotations

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.ports import ApiServerBindPort, CommandRunnerPort

_WILDCARD_HOSTS = frozenset({"*", "0.0.0.0", "[::]", "::"})


class SocketStatsApiServerBindProbe:
    """Detects whether kube-apiserver listens on a wildcard address.

    A wildcard listener also serves the VIP as soon as keepalived assigns
    it, which is what makes a local load balancer on the same port
    conflict with the API server.
    """

    def __init__(
        self,
        runner: CommandRunnerPort,
        api_port: int = 6443,
        process_name: str = "kube-apiserver",
        timeout: float = 5.0,
    ) -> None:
        self._runner = runner
        self._api_port = api_port
        self._process_name = process_name
        self._timeout = timeout

    def binds_all_interfaces(self) -> bool:
        """Check for a wildcard listener owned by the API server process.

        Raises:
            CommandExecutionError: If ``ss`` fails.
        """
        result = run_checked(
            self._runner,
            ["ss", "-H", "-tlnp", f"sport = :{self._api_port}"],
            timeout=self._timeout,
        )
        for line in result.stdout.splitlines():
            if self._process_name not in line:
                continue
            tokens = line.split()
            # State Recv-Q Send-Q Local:Port Peer:Port Process
            if len(tokens) < 4:
                continue
            host, _, port = tokens[3].rpartition(":")
            if port == str(self._api_port) and host in _WILDCARD_HOSTS:
                return True
        return False


# Runtime protocol check
assert isinstance(
    SocketStatsApiServerBindProbe(SubprocessCommandRunner()), ApiServerBindPort
)

"""Port interfaces for the cpjoin core package.

Ports define the contracts that adapters must implement.
These are Protocol classes (structural subtyping) for flexible testing.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cpjoin.domain.credentials import CredentialWindow
    from cpjoin.domain.events import JoinEvent, VipEvent
    from cpjoin.domain.membership import MemberRecord, Node, ReplicationProgress


@dataclass(frozen=True)
class CommandResult:
    """Result of running an external command.

    Attributes:
        args: The command line that was executed.
        returncode: Process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunnerPort(Protocol):
    """Port interface for running external commands.

    Contract:
        - run() executes args without a shell and captures output
        - run() returns a CommandResult for any exit status
        - Raises CommandExecutionError if the command cannot be started or
          exceeds the timeout
    """

    def run(
        self, args: list[str], timeout: float | None = None, input: str | None = None
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Program and arguments.
            timeout: Seconds before the command is killed, None for no limit.
            input: Optional text fed to standard input.

        Returns:
            CommandResult with exit status and captured output.

        Raises:
            CommandExecutionError: If the command is missing or times out.
        """
        ...


@runtime_checkable
class ClusterControlPort(Protocol):
    """Port interface for the cluster control API.

    Contract:
        - join() adds this node as a control-plane member and returns the
          consensus-store member ID it was registered under
        - join() is NOT idempotent: a failed call may leave a learner
          behind, and callers must not retry it blindly
        - healthz() returns True if the API answers its health endpoint
    """

    def join(self, window: CredentialWindow, node: Node) -> str:
        """Join the node to the cluster as a control-plane member.

        Args:
            window: Credentials issued by the founding node.
            node: Identity of the joining node.

        Returns:
            The member ID of the new consensus-store member.

        Raises:
            ClusterJoinError: If the join fails.
        """
        ...

    def healthz(self) -> bool:
        """Check the API server health endpoint through the VIP.

        Returns:
            True if the endpoint reports healthy, False otherwise.
        """
        ...


@runtime_checkable
class ClusterHealthPort(Protocol):
    """Port interface for probing the API health endpoint alone.

    Contract:
        - healthz() returns True if the endpoint answers "ok"
        - Network failures are reported as False, not raised
    """

    def healthz(self) -> bool:
        """Check the health endpoint."""
        ...


@runtime_checkable
class ConsensusStorePort(Protocol):
    """Port interface for the consensus store's query/admin API.

    Mutations go through the store's own quorum write path; callers must
    re-read membership after every mutation instead of caching it.

    Contract:
        - list_members() returns the current membership list
        - promote() raises MemberPromotionError if the store rejects it
        - remove_member() removes a member; only called explicitly
        - replication_progress() reports the member's raft index and the
          leader's
        - All methods may raise ConsensusStoreError if the store is
          unreachable
    """

    def list_members(self) -> list[MemberRecord]:
        """Return the current membership list."""
        ...

    def promote(self, member_id: str) -> None:
        """Promote a learner to a voting member.

        Raises:
            MemberPromotionError: If the store rejects the promotion.
        """
        ...

    def remove_member(self, member_id: str) -> None:
        """Remove a member from the store."""
        ...

    def replication_progress(self, member_id: str) -> ReplicationProgress:
        """Return the member's replication position relative to the leader."""
        ...


@runtime_checkable
class FailoverStatePort(Protocol):
    """Port interface for reading local failover daemon state.

    Contract:
        - holds_address() returns True if the address is currently
          assigned to a local interface
        - Reads only; never changes address assignment
    """

    def holds_address(self, address: str) -> bool:
        """Check whether the address is assigned to this node."""
        ...


@runtime_checkable
class LoadBalancerControlPort(Protocol):
    """Port interface for the local load balancer.

    Contract:
        - enable_and_bind() starts the load balancer and enables it at boot
        - disable_and_unbind() stops it and disables it at boot
        - Both are idempotent: repeating a call is not an error
        - is_bound() reports whether the load balancer is running
        - Failures raise LoadBalancerControlError
    """

    def enable_and_bind(self) -> None:
        """Start the load balancer so it binds the API port."""
        ...

    def disable_and_unbind(self) -> None:
        """Stop the load balancer so it releases the API port."""
        ...

    def is_bound(self) -> bool:
        """Report whether the load balancer is running."""
        ...


@runtime_checkable
class ApiServerBindPort(Protocol):
    """Port interface for detecting how the API server binds its port.

    Contract:
        - binds_all_interfaces() returns True if the API server listens on
          a wildcard address, which includes the VIP once it is assigned
    """

    def binds_all_interfaces(self) -> bool:
        """Check whether the API server listens on every interface."""
        ...


@runtime_checkable
class CredentialIssuerPort(Protocol):
    """Port interface for registering join credentials with the cluster.

    Contract:
        - register_token() makes the token valid for ttl seconds
        - upload_certificates() uploads control-plane certificates
          encrypted with cert_key
        - ca_cert_hash() returns the discovery hash ``sha256:<hex>``
        - Failures raise CommandExecutionError
    """

    def register_token(self, token: str, ttl: float) -> None:
        """Register a bootstrap token with the given lifetime."""
        ...

    def upload_certificates(self, cert_key: str) -> None:
        """Upload control-plane certificates encrypted with cert_key."""
        ...

    def ca_cert_hash(self) -> str:
        """Return the CA public key discovery hash."""
        ...


@runtime_checkable
class NodeIdentityResolverPort(Protocol):
    """Port interface for resolving the current node's identity.

    Contract:
        - resolve_node_name() returns a non-empty name
        - resolve_node_address() returns a non-empty address
        - May raise KeyError if required configuration is missing
        - May raise ValueError if a resolved value is empty
    """

    def resolve_node_name(self) -> str:
        """Resolve this node's name."""
        ...

    def resolve_node_address(self) -> str:
        """Resolve this node's advertised address."""
        ...


@runtime_checkable
class EventEmitterPort(Protocol):
    """Port interface for emitting join and VIP events.

    Contract:
        - emit(event) delivers the event to all registered observers
        - emit() is fire-and-forget (no return value, no exceptions propagated)
    """

    def emit(self, event: JoinEvent | VipEvent) -> None:
        """Emit an event to observers.

        Args:
            event: The event to emit.
        """
        ...


@runtime_checkable
class LoggingPort(Protocol):
    """Port interface for structured logging.

    Implementations handle log message delivery to configured logging
    backends. Use cases log stage transitions, retries and failures here.

    Contract:
        - Every method is fire-and-forget (no return value, no exceptions
          propagated)
        - Thread safety is implementation-defined
    """

    def debug(self, message: str) -> None:
        """Log a debug message."""
        ...

    def info(self, message: str) -> None:
        """Log an informational message."""
        ...

    def warning(self, message: str) -> None:
        """Log a warning message."""
        ...

    def error(self, message: str) -> None:
        """Log an error message."""
        ...


class EnvironmentNodeIdentityResolver:
    """Default implementation: resolve identity from environment variables.

    Reads CPJOIN_NODE_NAME and CPJOIN_NODE_ADDRESS, stripping whitespace.
    Replaces reading ``hostname`` and ``ip addr`` output at run time.
    """

    def resolve_node_name(self) -> str:
        """Resolve node name from CPJOIN_NODE_NAME.

        Raises:
            KeyError: If CPJOIN_NODE_NAME is not set.
            ValueError: If it is empty or whitespace-only.
        """
        return self._read("CPJOIN_NODE_NAME")

    def resolve_node_address(self) -> str:
        """Resolve node address from CPJOIN_NODE_ADDRESS.

        Raises:
            KeyError: If CPJOIN_NODE_ADDRESS is not set.
            ValueError: If it is empty or whitespace-only.
        """
        return self._read("CPJOIN_NODE_ADDRESS")

    def _read(self, variable: str) -> str:
        value = os.environ[variable].strip()
        if not value:
            raise ValueError(f"{variable} cannot be empty or whitespace-only")
        return value


@runtime_checkable
class TimeProvider(Protocol):
    """Port interface for time operations.

    Contract:
        - get_time_seconds() returns current Unix timestamp as float
        - Successive calls return non-decreasing values
    """

    def get_time_seconds(self) -> float:
        """Return current Unix timestamp in seconds."""
        ...


@runtime_checkable
class SleeperPort(Protocol):
    """Port interface for waiting between polls.

    Contract:
        - sleep(seconds) blocks for roughly the given duration
        - Fakes may advance a fake clock instead of blocking
    """

    def sleep(self, seconds: float) -> None:
        """Wait for the given number of seconds."""
        ...


class RealTimeProvider:
    """Default implementation: provides real system time."""

    def get_time_seconds(self) -> float:
        """Return current system time as Unix timestamp."""
        return time.time()


class RealSleeper:
    """Default implementation: blocks the calling thread with time.sleep."""

    def sleep(self, seconds: float) -> None:
        """Sleep for the given number of seconds."""
        if seconds > 0:
            time.sleep(seconds)

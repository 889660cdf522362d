"""Domain exceptions.

Exception hierarchy:
- CPJoinConfigError: Raised by domain entities and settings when a value
  fails validation.
- CPJoinError: Base for runtime errors raised at the port boundary.
  Adapters raise these; use cases convert them into typed results so that
  the orchestrator's caller always receives a report, never a stray
  exception.
"""


class CPJoinConfigError(Exception):
    """Raised when cpjoin configuration or a domain value is invalid.

    Domain entities (e.g., CredentialWindow, JoinSettings) and the config
    parser raise this when validation fails.
    """

    pass


class CPJoinError(Exception):
    """Base exception for runtime failures reported by ports."""

    pass


class CommandExecutionError(CPJoinError):
    """Raised when an external command exits non-zero or cannot be run.

    Attributes:
        args_: The command line that was executed.
        returncode: Exit status, or None if the command never started.
        stderr: Captured standard error output.
    """

    def __init__(
        self,
        message: str,
        args_: tuple[str, ...] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.args_ = args_
        self.returncode = returncode
        self.stderr = stderr


class ClusterJoinError(CPJoinError):
    """Raised when the cluster join call fails.

    The join is not idempotent at the consensus-store level, so a raised
    ClusterJoinError may leave an orphaned learner behind.
    """

    pass


class ConsensusStoreError(CPJoinError):
    """Raised when the consensus store cannot answer a query or mutation."""

    pass


class MemberPromotionError(ConsensusStoreError):
    """Raised when the consensus store rejects a learner promotion.

    Attributes:
        member_id: The member whose promotion was rejected.
        reason: Raw rejection text reported by the store.
    """

    def __init__(self, member_id: str, reason: str) -> None:
        super().__init__(f"promotion of member {member_id} rejected: {reason}")
        self.member_id = member_id
        self.reason = reason


class LoadBalancerControlError(CPJoinError):
    """Raised when the local load balancer cannot be started or stopped."""

    pass


class CredentialExpiredError(CPJoinError):
    """Raised when an operation needs credentials that have already expired."""

    pass


class JoinStateError(CPJoinError):
    """Raised when a JoinOrchestrator is driven outside its state machine."""

    pass

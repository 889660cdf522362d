"""Operator-facing join report.

The report is the only externally observed output of a join attempt. Each
failure kind maps to a distinct recovery procedure, so kinds are never
collapsed into a generic error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cpjoin.domain.credentials import CredentialKind
from cpjoin.domain.events import JoinStage
from cpjoin.domain.membership import MemberRecord, ReplicationProgress


class FailureKind(Enum):
    """Error taxonomy of a failed join attempt."""

    CREDENTIAL_EXPIRED = "credential_expired"
    CLUSTER_UNREACHABLE = "cluster_unreachable"
    JOIN_FAILED = "join_failed"
    LEARNER_SYNC_TIMEOUT = "learner_sync_timeout"
    PROMOTION_REJECTED = "promotion_rejected"
    BIND_APPLY_FAILED = "bind_apply_failed"
    CANCELLED = "cancelled"


_RECOVERY_HINTS: dict[FailureKind, str] = {
    FailureKind.CLUSTER_UNREACHABLE: (
        "Check that the founding node is up and the VIP answers /healthz, "
        "then start a new join attempt."
    ),
    FailureKind.JOIN_FAILED: (
        "Remove any orphaned learner for this node from the consensus store, "
        "reset the node, then start a new join attempt."
    ),
    FailureKind.LEARNER_SYNC_TIMEOUT: (
        "Check network and disk health of the joining node, remove the "
        "learner member, then start a new join attempt."
    ),
    FailureKind.PROMOTION_REJECTED: (
        "Investigate consensus store health (leader election, concurrent "
        "membership changes) before promoting the learner manually."
    ),
    FailureKind.BIND_APPLY_FAILED: (
        "Membership is complete. Fix the local load balancer service and "
        "re-run bind reconciliation on this node."
    ),
    FailureKind.CANCELLED: (
        "The attempt was cancelled. Start a new join attempt when ready."
    ),
}


@dataclass(frozen=True)
class JoinFailure:
    """Details of a failed stage.

    Attributes:
        kind: Error kind, one per recovery procedure.
        detail: Human-readable description of what went wrong.
        expired: Which credential expired (CREDENTIAL_EXPIRED only).
        attempts: Attempts consumed by the stage's retry budget.
        elapsed: Seconds spent in the failing stage.
        last_progress: Last replication progress seen (learner stages).
        orphaned_learners: Learner records found for the node after a
                           failed or cancelled join. Listed, never removed.
    """

    kind: FailureKind
    detail: str
    expired: CredentialKind | None = None
    attempts: int = 0
    elapsed: float = 0.0
    last_progress: ReplicationProgress | None = None
    orphaned_learners: tuple[MemberRecord, ...] = ()


@dataclass(frozen=True)
class JoinReport:
    """Terminal outcome of a join attempt.

    Attributes:
        node_name: The joining node.
        stage: DONE, or the stage that failed.
        failure: Failure details, None when the join completed.
        member_id: Consensus-store member created by the join, if any.
        requires_cleanup: True if a learner may exist that must be removed
                          explicitly before a fresh attempt.
    """

    node_name: str
    stage: JoinStage
    failure: JoinFailure | None = None
    member_id: str | None = None
    requires_cleanup: bool = False

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @property
    def recovery_hint(self) -> str | None:
        """Operator action matching the failure kind, None on success."""
        if self.failure is None:
            return None

        if self.failure.kind is FailureKind.CREDENTIAL_EXPIRED:
            if self.failure.expired is CredentialKind.CERT_KEY:
                return (
                    "Certificate key expired. Re-upload certificates on the "
                    "founding node to get a new key, then retry."
                )
            return "Bootstrap token expired. Issue a new credential window, then retry."

        return _RECOVERY_HINTS[self.failure.kind]

    def summary(self) -> str:
        """One-line description naming the stage and error kind."""
        if self.failure is None:
            return f"{self.node_name}: joined as voting member {self.member_id}"

        kind = self.failure.kind.value
        if self.failure.expired is not None:
            kind = f"{kind}({self.failure.expired.value})"
        return f"{self.node_name}: failed at {self.stage.value} [{kind}]: {self.failure.detail}"

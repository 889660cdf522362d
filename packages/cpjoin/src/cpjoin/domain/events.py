"""Domain events for join state transitions.

Events are immutable value objects representing state changes of a join
attempt. They follow the frozen dataclass pattern used throughout the
domain layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JoinStage(Enum):
    """States of the join state machine, in execution order.

    FAILED is terminal and reachable from any non-terminal state.
    """

    IDLE = "idle"
    CREDENTIAL_CHECK = "credential_check"
    AWAITING_CLUSTER_REACHABLE = "awaiting_cluster_reachable"
    JOINING = "joining"
    AWAITING_LEARNER_SYNC = "awaiting_learner_sync"
    PROMOTING = "promoting"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JoinStage.DONE, JoinStage.FAILED)

    @property
    def ordinal(self) -> int:
        """Position in the happy path; FAILED sorts after DONE."""
        return list(JoinStage).index(self)


class VipEventType(Enum):
    """Types of VIP ownership events.

    Attributes:
        ACQUIRED: This node settled into holding the VIP.
        RELEASED: This node settled into not holding the VIP.
    """

    ACQUIRED = "acquired"
    RELEASED = "released"


@dataclass(frozen=True)
class JoinEvent:
    """Immutable event emitted when a join attempt changes stage.

    Attributes:
        node_name: The joining node.
        from_stage: Stage left.
        to_stage: Stage entered.
        reason: Optional human-readable reason (set for FAILED).
    """

    node_name: str
    from_stage: JoinStage
    to_stage: JoinStage
    reason: str | None = None


@dataclass(frozen=True)
class VipEvent:
    """Immutable event emitted when settled VIP ownership changes.

    Attributes:
        event_type: Whether the VIP was acquired or released.
        address: The floating address.
        node_name: The observing node.
    """

    event_type: VipEventType
    address: str
    node_name: str

"""Domain entities for nodes and consensus-store membership.

These mirror the etcd member list as seen from a joining control-plane
node. They are used by the MembershipTracker and JoinOrchestrator use cases.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cpjoin.domain.exceptions import CPJoinConfigError


class NodeRole(Enum):
    """Role of a control-plane node with respect to the consensus store.

    Attributes:
        JOINING: An operator registered the node's intent to join.
        LEARNER: The node's member receives replication but cannot vote.
        VOTING_MEMBER: The node counts toward quorum.
        UNREACHABLE: The node's member is registered but never started.
    """

    JOINING = "joining"
    LEARNER = "learner"
    VOTING_MEMBER = "voting-member"
    UNREACHABLE = "unreachable"


@dataclass
class Node:
    """A control-plane node taking part in a join.

    Mutable entity: the orchestrator updates ``role`` as the join advances.
    Removal happens only through an explicit member removal.

    Attributes:
        name: Node name, also used as the consensus-store member name.
        address: Address the node advertises to its peers.
        role: Current role, JOINING until the join call succeeds.
    """

    name: str
    address: str
    role: NodeRole = NodeRole.JOINING

    def __post_init__(self) -> None:
        """Validate node identity."""
        for field_name, value in (("name", self.name), ("address", self.address)):
            if not value or not value.strip():
                raise CPJoinConfigError(
                    f"node {field_name} cannot be empty or whitespace-only"
                )


@dataclass(frozen=True)
class MemberRecord:
    """One entry in the consensus store's membership list.

    Attributes:
        member_id: Store-assigned member identifier (hex string for etcd).
        node_name: Member name. Empty while the member has not started.
        is_learner: True if the member does not vote yet.
        progress_known: True once a caught-up replication index has been
                        observed for this member, making promotion legal.
        peer_urls: Peer URLs the member was registered with.
    """

    member_id: str
    node_name: str
    is_learner: bool
    progress_known: bool = False
    peer_urls: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate member record."""
        if not self.member_id or not self.member_id.strip():
            raise CPJoinConfigError("member_id cannot be empty")

    @property
    def is_started(self) -> bool:
        """Unstarted members are listed without a name."""
        return bool(self.node_name)

    def matches_node(self, node: Node) -> bool:
        """Check whether this record belongs to the given node.

        Matches on name, or on the node's address in the peer URLs for
        members that have not started yet.
        """
        if self.node_name:
            return self.node_name == node.name
        return any(f"//{node.address}:" in url for url in self.peer_urls)


@dataclass(frozen=True)
class ReplicationProgress:
    """Replication position of a member relative to the leader.

    Attributes:
        member_id: The member the progress refers to.
        member_index: Last raft index applied by the member.
        leader_index: Last raft index on the leader.
    """

    member_id: str
    member_index: int
    leader_index: int

    @property
    def lag(self) -> int:
        """Number of entries the member is behind the leader."""
        return max(self.leader_index - self.member_index, 0)

    def is_caught_up(self, max_lag: int = 0) -> bool:
        """Check whether the member is close enough to the leader to vote."""
        return self.lag <= max_lag

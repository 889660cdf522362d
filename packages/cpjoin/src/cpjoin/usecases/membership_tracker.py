"""MembershipTracker use case for learner catch-up and promotion.

Mirrors the consensus store's member list and drives a learner to voting
membership. Mutations go through the store's own quorum write path: the
tracker takes no lock around the store and re-reads membership after
every mutation instead of caching it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from cpjoin.adapters.ports import ConsensusStorePort, LoggingPort
from cpjoin.domain.exceptions import CPJoinError, MemberPromotionError
from cpjoin.domain.membership import MemberRecord, NodeRole, ReplicationProgress
from cpjoin.domain.retry import PollSpec
from cpjoin.usecases.bounded_poller import BoundedPoller


class RejectionReason(Enum):
    """Why a promotion did not happen.

    Attributes:
        NOT_SYNCED: The learner has not caught up with the leader.
        CHANGE_IN_PROGRESS: The store is busy with an election or another
                            membership change; retrying later may succeed.
        MEMBER_NOT_FOUND: The member is not in the membership list.
        STORE_ERROR: The store could not be reached or gave no usable answer.
    """

    NOT_SYNCED = "not_synced"
    CHANGE_IN_PROGRESS = "change_in_progress"
    MEMBER_NOT_FOUND = "member_not_found"
    STORE_ERROR = "store_error"


# Substrings of etcd server errors, checked in order.
_REJECTION_PATTERNS: tuple[tuple[str, RejectionReason], ...] = (
    ("in sync with leader", RejectionReason.NOT_SYNCED),
    ("member not found", RejectionReason.MEMBER_NOT_FOUND),
    ("unhealthy cluster", RejectionReason.CHANGE_IN_PROGRESS),
    ("not enough started members", RejectionReason.CHANGE_IN_PROGRESS),
    ("leader changed", RejectionReason.CHANGE_IN_PROGRESS),
    ("request timed out", RejectionReason.CHANGE_IN_PROGRESS),
    ("too many learner", RejectionReason.CHANGE_IN_PROGRESS),
)


def classify_rejection(raw_reason: str) -> RejectionReason:
    """Map a raw store rejection message to a RejectionReason."""
    lowered = raw_reason.lower()
    for pattern, reason in _REJECTION_PATTERNS:
        if pattern in lowered:
            return reason
    return RejectionReason.STORE_ERROR


@dataclass(frozen=True)
class ProgressResult:
    """Outcome of waiting for a learner to catch up.

    Attributes:
        member_id: The learner waited for.
        ready: True if the learner caught up before the ceiling.
        elapsed: Seconds spent waiting.
        attempts: Progress queries made.
        last_progress: Last progress the store reported, if any.
        cancelled: True if the wait was cancelled.
    """

    member_id: str
    ready: bool
    elapsed: float
    attempts: int
    last_progress: ReplicationProgress | None = None
    cancelled: bool = False

    @property
    def timed_out(self) -> bool:
        return not self.ready and not self.cancelled


@dataclass(frozen=True)
class PromotionResult:
    """Outcome of a single promotion call.

    Attributes:
        member_id: The member promoted.
        promoted: True if the member is now listed as voting.
        reason: Rejection reason when not promoted.
        detail: Raw detail from the store, for the operator.
    """

    member_id: str
    promoted: bool
    reason: RejectionReason | None = None
    detail: str = ""

    @classmethod
    def success(cls, member_id: str) -> PromotionResult:
        return cls(member_id=member_id, promoted=True)

    @classmethod
    def rejected(
        cls, member_id: str, reason: RejectionReason, detail: str
    ) -> PromotionResult:
        return cls(member_id=member_id, promoted=False, reason=reason, detail=detail)


class MembershipTracker:
    """Tracks consensus-store membership and promotes learners.

    A member may only be promoted if await_learner_progress() most recently
    returned ready for that exact member. The readiness set is guarded by a
    lock so one tracker can serve callers on several threads.

    remove() is explicit: neither promote() nor its failure path ever
    removes a member.
    """

    def __init__(
        self,
        consensus_store: ConsensusStorePort,
        poller: BoundedPoller | None = None,
        poll_interval: float = 10.0,
        max_learner_lag: int = 0,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            consensus_store: Port to the store's query/admin API.
            poller: Bounded poll primitive used for catch-up waits.
            poll_interval: Seconds between progress queries.
            max_learner_lag: Entries a learner may trail and still be ready.
            logger: Optional logging port.
        """
        self._store = consensus_store
        self._poller = poller or BoundedPoller()
        self._poll_interval = poll_interval
        self._max_learner_lag = max_learner_lag
        self._logger = logger
        self._ready: set[str] = set()
        self._lock = threading.Lock()

    def _log(self, level: str, message: str) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(message)

    def current_members(self) -> list[MemberRecord]:
        """Return the store's membership list, read fresh.

        progress_known is set on members this tracker has seen catch up.

        Raises:
            ConsensusStoreError: If the store cannot be read.
        """
        members = self._store.list_members()
        with self._lock:
            ready = set(self._ready)
        return [
            MemberRecord(
                member_id=member.member_id,
                node_name=member.node_name,
                is_learner=member.is_learner,
                progress_known=member.progress_known or member.member_id in ready,
                peer_urls=member.peer_urls,
            )
            for member in members
        ]

    def find_learners(
        self, node_name: str | None = None, address: str | None = None
    ) -> list[MemberRecord]:
        """List learner members, optionally only those of one node.

        An unstarted member has no name yet, so it matches by address in
        its peer URLs instead.

        Raises:
            ConsensusStoreError: If the store cannot be read.
        """
        learners = [member for member in self.current_members() if member.is_learner]
        if node_name is None and address is None:
            return learners

        def belongs(member: MemberRecord) -> bool:
            if member.node_name:
                return member.node_name == node_name
            return address is not None and any(
                f"//{address}:" in url for url in member.peer_urls
            )

        return [member for member in learners if belongs(member)]

    def role_of(self, node_name: str) -> NodeRole | None:
        """Derive a node's role from the membership list.

        Returns None if the node has no member.

        Raises:
            ConsensusStoreError: If the store cannot be read.
        """
        for member in self._store.list_members():
            if member.node_name == node_name:
                return NodeRole.LEARNER if member.is_learner else NodeRole.VOTING_MEMBER
        return None

    def is_ready(self, member_id: str) -> bool:
        """True if the last wait for member_id returned ready."""
        with self._lock:
            return member_id in self._ready

    def _mark(self, member_id: str, ready: bool) -> None:
        with self._lock:
            if ready:
                self._ready.add(member_id)
            else:
                self._ready.discard(member_id)

    def await_learner_progress(
        self,
        member_id: str,
        timeout: float,
        should_stop: Callable[[], bool] | None = None,
    ) -> ProgressResult:
        """Poll the store until the learner catches up with the leader.

        Transient store errors count as "not yet" and polling continues
        until the hard ceiling.

        Args:
            member_id: The learner to wait for.
            timeout: Hard ceiling in seconds.
            should_stop: Optional cancellation check.
        """
        last_progress: ReplicationProgress | None = None

        def caught_up() -> bool:
            nonlocal last_progress
            try:
                progress = self._store.replication_progress(member_id)
            except CPJoinError as e:
                self._log("warning", f"progress query for {member_id} failed: {e}")
                return False
            last_progress = progress
            self._log(
                "debug",
                f"member {member_id} at index {progress.member_index}, "
                f"leader at {progress.leader_index}",
            )
            return progress.is_caught_up(self._max_learner_lag)

        spec = PollSpec(interval=self._poll_interval, ceiling=max(timeout, self._poll_interval))
        outcome = self._poller.poll(caught_up, spec, should_stop)
        self._mark(member_id, outcome.satisfied)

        if outcome.satisfied:
            self._log("info", f"member {member_id} caught up after {outcome.elapsed:.0f}s")
        elif outcome.timed_out:
            self._log(
                "warning",
                f"member {member_id} did not catch up within {timeout:.0f}s",
            )

        return ProgressResult(
            member_id=member_id,
            ready=outcome.satisfied,
            elapsed=outcome.elapsed,
            attempts=outcome.attempts,
            last_progress=last_progress,
            cancelled=outcome.cancelled,
        )

    def _find(self, member_id: str) -> MemberRecord | None:
        for member in self._store.list_members():
            if member.member_id == member_id:
                return member
        return None

    def promote(self, member_id: str) -> PromotionResult:
        """Promote a caught-up learner to a voting member.

        Refuses without calling the store unless the member was most
        recently reported ready. A rejected promotion clears readiness, so
        the caller has to wait for catch-up again before retrying. The
        member is only reported promoted once a fresh membership read lists
        it as voting; an already-voting member is reported promoted.
        """
        if not self.is_ready(member_id):
            return PromotionResult.rejected(
                member_id,
                RejectionReason.NOT_SYNCED,
                "learner progress was not confirmed before promotion",
            )

        try:
            before = self._find(member_id)
        except CPJoinError as e:
            self._mark(member_id, False)
            return PromotionResult.rejected(member_id, RejectionReason.STORE_ERROR, str(e))

        if before is None:
            self._mark(member_id, False)
            return PromotionResult.rejected(
                member_id, RejectionReason.MEMBER_NOT_FOUND, "member is not listed"
            )

        if not before.is_learner:
            self._log("info", f"member {member_id} is already a voting member")
            return PromotionResult.success(member_id)

        try:
            self._store.promote(member_id)
        except MemberPromotionError as e:
            self._mark(member_id, False)
            reason = classify_rejection(e.reason)
            self._log("warning", f"promotion of {member_id} rejected ({reason.value}): {e.reason}")
            return PromotionResult.rejected(member_id, reason, e.reason)
        except CPJoinError as e:
            self._mark(member_id, False)
            self._log("warning", f"promotion of {member_id} failed: {e}")
            return PromotionResult.rejected(member_id, RejectionReason.STORE_ERROR, str(e))

        self._mark(member_id, False)
        try:
            after = self._find(member_id)
        except CPJoinError as e:
            return PromotionResult.rejected(
                member_id,
                RejectionReason.STORE_ERROR,
                f"promotion sent but membership could not be re-read: {e}",
            )

        if after is None:
            return PromotionResult.rejected(
                member_id,
                RejectionReason.MEMBER_NOT_FOUND,
                "member disappeared after promotion",
            )

        if after.is_learner:
            return PromotionResult.rejected(
                member_id,
                RejectionReason.CHANGE_IN_PROGRESS,
                "member still listed as learner after promotion",
            )

        self._log("info", f"member {member_id} promoted to voting member")
        return PromotionResult.success(member_id)

    def remove(self, member_id: str) -> None:
        """Remove a member from the store.

        Used only for explicit cleanup of an abandoned join.

        Raises:
            ConsensusStoreError: If the store refuses the removal.
        """
        self._store.remove_member(member_id)
        self._mark(member_id, False)
        self._log("info", f"removed member {member_id}")

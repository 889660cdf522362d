"""Fake consensus store for testing.

Provides an in-memory, thread-safe test double for ConsensusStorePort
with scriptable learner catch-up and promotion rejections.
"""

from __future__ import annotations

import threading
from collections import deque

from cpjoin.domain.exceptions import ConsensusStoreError, MemberPromotionError
from cpjoin.domain.membership import MemberRecord, ReplicationProgress

NOT_IN_SYNC = (
    "etcdserver: can only promote a learner member which is in sync with leader"
)


class FakeConsensusStore:
    """Fake implementation of ConsensusStorePort for testing.

    Members are kept as MemberRecord values keyed by member ID. The leader
    sits at ``leader_index``; a learner's index advances only when a test
    says so, either directly or after a number of progress queries.

    Example:
        >>> store = FakeConsensusStore(leader_index=100)
        >>> store.add_member("a1", "k8s-cp1", is_learner=False, member_index=100)
        >>> store.add_member("b2", "k8s-cp2", is_learner=True, member_index=40)
        >>> store.replication_progress("b2").lag
        60
    """

    def __init__(self, leader_index: int = 100) -> None:
        """Initialize an empty store.

        Args:
            leader_index: Raft index reported for the leader.
        """
        self._leader_index = leader_index
        self._members: dict[str, MemberRecord] = {}
        self._indexes: dict[str, int] = {}
        self._catch_up_after: dict[str, int] = {}
        self._new_member_catch_up: int | None = None
        self._rejections: deque[str] = deque()
        self._unavailable = False
        self._calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> list[tuple[str, str | None]]:
        """Return (operation, member_id) tuples in call order."""
        with self._lock:
            return list(self._calls)

    def promote_calls(self) -> list[str]:
        """Return the member IDs passed to promote(), in call order."""
        return [member_id for op, member_id in self.calls if op == "promote" and member_id]

    def remove_calls(self) -> list[str]:
        return [member_id for op, member_id in self.calls if op == "remove" and member_id]

    def add_member(
        self,
        member_id: str,
        node_name: str,
        is_learner: bool = True,
        member_index: int = 0,
        peer_urls: tuple[str, ...] = (),
    ) -> MemberRecord:
        """Insert a member as if a join had registered it."""
        record = MemberRecord(
            member_id=member_id,
            node_name=node_name,
            is_learner=is_learner,
            peer_urls=peer_urls,
        )
        with self._lock:
            self._members[member_id] = record
            self._indexes[member_id] = member_index
            if is_learner and self._new_member_catch_up is not None:
                self._catch_up_after[member_id] = self._new_member_catch_up
        return record

    def get_member(self, member_id: str) -> MemberRecord | None:
        with self._lock:
            return self._members.get(member_id)

    def set_member_index(self, member_id: str, index: int) -> None:
        with self._lock:
            self._indexes[member_id] = index

    def catch_up_member(self, member_id: str) -> None:
        """Bring the member level with the leader."""
        with self._lock:
            self._indexes[member_id] = self._leader_index

    def catch_up_after(self, member_id: str, queries: int) -> None:
        """Make the member catch up on its n-th progress query.

        Args:
            member_id: The member to script.
            queries: The replication_progress() call, counted from 1, that
                     first reports the member level with the leader.
        """
        with self._lock:
            self._catch_up_after[member_id] = queries

    def catch_up_new_members_after(self, queries: int | None) -> None:
        """Script catch_up_after() for every learner added from now on.

        Useful when the member ID is only known once a join registers it.
        Pass None to stop scripting new members.
        """
        with self._lock:
            self._new_member_catch_up = queries

    def reject_next_promotions(self, count: int, reason: str = NOT_IN_SYNC) -> None:
        """Reject the next ``count`` promote() calls with reason."""
        with self._lock:
            self._rejections.extend([reason] * count)

    def set_unavailable(self, unavailable: bool = True) -> None:
        """Make every call raise ConsensusStoreError."""
        with self._lock:
            self._unavailable = unavailable

    def _check_available(self) -> None:
        if self._unavailable:
            raise ConsensusStoreError("etcd cluster is unavailable")

    def list_members(self) -> list[MemberRecord]:
        with self._lock:
            self._calls.append(("list", None))
            self._check_available()
            return list(self._members.values())

    def promote(self, member_id: str) -> None:
        with self._lock:
            self._calls.append(("promote", member_id))
            self._check_available()

            member = self._members.get(member_id)
            if member is None:
                raise MemberPromotionError(member_id, "etcdserver: member not found")

            if self._rejections:
                raise MemberPromotionError(member_id, self._rejections.popleft())

            if member.is_learner:
                if self._indexes.get(member_id, 0) < self._leader_index:
                    raise MemberPromotionError(member_id, NOT_IN_SYNC)
                self._members[member_id] = MemberRecord(
                    member_id=member.member_id,
                    node_name=member.node_name,
                    is_learner=False,
                    progress_known=True,
                    peer_urls=member.peer_urls,
                )

    def remove_member(self, member_id: str) -> None:
        with self._lock:
            self._calls.append(("remove", member_id))
            self._check_available()
            if self._members.pop(member_id, None) is None:
                raise ConsensusStoreError(f"member {member_id} not found")
            self._indexes.pop(member_id, None)
            self._catch_up_after.pop(member_id, None)

    def replication_progress(self, member_id: str) -> ReplicationProgress:
        with self._lock:
            self._calls.append(("progress", member_id))
            self._check_available()

            remaining = self._catch_up_after.get(member_id)
            if remaining is not None:
                if remaining <= 1:
                    self._indexes[member_id] = self._leader_index
                    del self._catch_up_after[member_id]
                else:
                    self._catch_up_after[member_id] = remaining - 1

            return ReplicationProgress(
                member_id=member_id,
                member_index=self._indexes.get(member_id, 0),
                leader_index=self._leader_index,
            )

"""Fake cluster control for testing.

Provides a test double for ClusterControlPort. A successful join registers
a learner in an attached FakeConsensusStore, mirroring how kubeadm adds
the new etcd member before reporting success.
"""

from __future__ import annotations

import itertools
import threading
from collections import deque

from cpjoin.adapters.fakes.fake_consensus_store import FakeConsensusStore
from cpjoin.domain.credentials import CredentialWindow
from cpjoin.domain.exceptions import ClusterJoinError
from cpjoin.domain.membership import Node

_ids = itertools.count(0x8E9E05C52164694D)


class FakeClusterControl:
    """Fake implementation of ClusterControlPort for testing.

    Example:
        >>> store = FakeConsensusStore()
        >>> control = FakeClusterControl(store)
        >>> member_id = control.join(window, Node("k8s-cp2", "10.0.0.2"))
        >>> store.get_member(member_id).is_learner
        True
    """

    def __init__(
        self,
        consensus_store: FakeConsensusStore | None = None,
        healthy: bool = True,
    ) -> None:
        """Initialize the fake.

        Args:
            consensus_store: Store in which joins register learners.
            healthy: Default healthz() answer.
        """
        self._store = consensus_store
        self._healthy = healthy
        self._health_answers: deque[bool] = deque()
        self._join_error: str | None = None
        self._leave_learner_on_error = False
        self._join_calls: list[tuple[CredentialWindow, Node]] = []
        self._health_calls = 0
        self._lock = threading.Lock()

    @property
    def join_calls(self) -> list[tuple[CredentialWindow, Node]]:
        with self._lock:
            return list(self._join_calls)

    @property
    def health_calls(self) -> int:
        with self._lock:
            return self._health_calls

    def set_healthy(self, healthy: bool) -> None:
        with self._lock:
            self._healthy = healthy

    def script_health(self, *answers: bool) -> None:
        """Answer the next healthz() calls in order, then fall back."""
        with self._lock:
            self._health_answers.extend(answers)

    def fail_join(
        self, message: str = "kubeadm join failed", leave_learner: bool = False
    ) -> None:
        """Make the next join() calls raise ClusterJoinError.

        Args:
            message: Error message.
            leave_learner: Register a learner before failing, simulating a
                           partial join that orphans a member.
        """
        with self._lock:
            self._join_error = message
            self._leave_learner_on_error = leave_learner

    def succeed_join(self) -> None:
        with self._lock:
            self._join_error = None
            self._leave_learner_on_error = False

    def join(self, window: CredentialWindow, node: Node) -> str:
        with self._lock:
            self._join_calls.append((window, node))
            error = self._join_error
            leave_learner = self._leave_learner_on_error

        if error is not None:
            if leave_learner:
                self._register(node)
            raise ClusterJoinError(error)

        return self._register(node)

    def _register(self, node: Node) -> str:
        member_id = format(next(_ids), "x")
        if self._store is not None:
            self._store.add_member(
                member_id,
                node.name,
                is_learner=True,
                peer_urls=(f"https://{node.address}:2380",),
            )
        return member_id

    def healthz(self) -> bool:
        with self._lock:
            self._health_calls += 1
            if self._health_answers:
                return self._health_answers.popleft()
            return self._healthy

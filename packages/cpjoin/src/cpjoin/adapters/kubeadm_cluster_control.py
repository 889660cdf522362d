"""kubeadm-based implementation of the ClusterControlPort.

Joins a node as an additional control-plane member with ``kubeadm join
--control-plane``. kubeadm adds the node's etcd member as a learner and
does not report the member ID, so the ID is looked up in the consensus
store afterwards.
"""

from __future__ import annotations

import logging

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.etcdctl_consensus_store import EtcdctlConsensusStore
from cpjoin.adapters.httpx_cluster_health import HTTPXClusterHealth
from cpjoin.adapters.ports import (
    ClusterControlPort,
    ClusterHealthPort,
    CommandRunnerPort,
    ConsensusStorePort,
)
from cpjoin.domain.credentials import CredentialWindow
from cpjoin.domain.exceptions import (
    ClusterJoinError,
    CommandExecutionError,
    ConsensusStoreError,
)
from cpjoin.domain.membership import Node
from cpjoin.domain.settings import VipSettings

logger = logging.getLogger(__name__)


class KubeadmClusterControl:
    """ClusterControlPort backed by the kubeadm CLI.

    Health checks are delegated to a ClusterHealthPort so the join and the
    probe can be replaced independently in tests.
    """

    def __init__(
        self,
        runner: CommandRunnerPort,
        vip: VipSettings,
        consensus_store: ConsensusStorePort,
        health: ClusterHealthPort,
        join_timeout: float = 600.0,
    ) -> None:
        """Initialize the adapter.

        Args:
            runner: Command runner used to invoke kubeadm.
            vip: Floating API endpoint the node joins through.
            consensus_store: Store queried for the new member's ID.
            health: Probe used by healthz().
            join_timeout: Seconds before ``kubeadm join`` is abandoned.
        """
        self._runner = runner
        self._vip = vip
        self._consensus_store = consensus_store
        self._health = health
        self._join_timeout = join_timeout

    def join_command(self, window: CredentialWindow, node: Node) -> list[str]:
        """Build the ``kubeadm join`` command line for a node."""
        args = [
            "kubeadm",
            "join",
            self._vip.endpoint,
            "--token",
            window.token,
        ]
        if window.ca_cert_hash:
            args += ["--discovery-token-ca-cert-hash", window.ca_cert_hash]
        else:
            args.append("--discovery-token-unsafe-skip-ca-verification")
        args += [
            "--control-plane",
            "--certificate-key",
            window.cert_key,
            "--apiserver-advertise-address",
            node.address,
            "--node-name",
            node.name,
        ]
        return args

    def join(self, window: CredentialWindow, node: Node) -> str:
        """Join the node and return its etcd member ID.

        Raises:
            ClusterJoinError: If kubeadm fails or no member for the node
                can be found afterwards.
        """
        logger.info("joining %s to control plane at %s", node.name, self._vip.endpoint)
        try:
            run_checked(
                self._runner,
                self.join_command(window, node),
                timeout=self._join_timeout,
            )
        except CommandExecutionError as e:
            raise ClusterJoinError(f"kubeadm join failed: {e.message}") from e

        try:
            members = self._consensus_store.list_members()
        except ConsensusStoreError as e:
            raise ClusterJoinError(
                f"kubeadm join finished but membership could not be read: {e}"
            ) from e

        matching = [member for member in members if member.matches_node(node)]
        if not matching:
            raise ClusterJoinError(
                f"kubeadm join finished but no etcd member matches {node.name}"
            )

        # A leftover voting member from an earlier attempt sorts last.
        matching.sort(key=lambda member: not member.is_learner)
        return matching[0].member_id

    def healthz(self) -> bool:
        return self._health.healthz()


# Runtime protocol check
assert isinstance(
    KubeadmClusterControl(
        SubprocessCommandRunner(),
        VipSettings(address="127.0.0.1"),
        EtcdctlConsensusStore(SubprocessCommandRunner()),
        HTTPXClusterHealth("127.0.0.1:6443"),
    ),
    ClusterControlPort,
)

"""etcdctl-based implementation of the ConsensusStorePort.

Talks to etcd through the ``etcdctl`` binary, either directly or through a
command prefix such as ``kubectl exec -n kube-system etcd-<node> --`` when
etcd runs as a static pod.
"""

from __future__ import annotations

import json
from typing import Any

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.ports import CommandRunnerPort, ConsensusStorePort
from cpjoin.domain.exceptions import (
    CommandExecutionError,
    ConsensusStoreError,
    MemberPromotionError,
)
from cpjoin.domain.membership import MemberRecord, ReplicationProgress
from cpjoin.domain.settings import EtcdSettings


def _member_hex(raw_id: int | str) -> str:
    """etcd prints IDs as decimal in JSON and expects hex on the CLI."""
    if isinstance(raw_id, str):
        return raw_id.lower()
    return format(raw_id, "x")


class EtcdctlConsensusStore:
    """ConsensusStorePort backed by etcdctl JSON output.

    Attributes:
        settings: Endpoints and TLS material passed to every call.
    """

    def __init__(
        self,
        runner: CommandRunnerPort,
        settings: EtcdSettings | None = None,
        command_prefix: tuple[str, ...] = (),
    ) -> None:
        """Initialize the store adapter.

        Args:
            runner: Command runner used to invoke etcdctl.
            settings: etcd endpoints and certificates.
            command_prefix: Arguments placed before ``etcdctl``.
        """
        self._runner = runner
        self.settings = settings or EtcdSettings()
        self._command_prefix = command_prefix

    def _etcdctl(self, *args: str) -> list[str]:
        return [
            *self._command_prefix,
            "etcdctl",
            f"--endpoints={','.join(self.settings.endpoints)}",
            f"--cacert={self.settings.cacert}",
            f"--cert={self.settings.cert}",
            f"--key={self.settings.key}",
            *args,
        ]

    def _query_json(self, *args: str) -> Any:
        try:
            result = run_checked(
                self._runner,
                self._etcdctl(*args, "-w", "json"),
                timeout=self.settings.command_timeout,
            )
        except CommandExecutionError as e:
            raise ConsensusStoreError(f"etcdctl {args[0]} failed: {e.message}") from e

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ConsensusStoreError(
                f"etcdctl {args[0]} returned invalid JSON: {e}"
            ) from e

    def list_members(self) -> list[MemberRecord]:
        """Return the etcd membership list.

        Raises:
            ConsensusStoreError: If etcdctl fails or prints unexpected output.
        """
        payload = self._query_json("member", "list")
        members = payload.get("members", []) if isinstance(payload, dict) else []
        return [
            MemberRecord(
                member_id=_member_hex(member["ID"]),
                node_name=member.get("name", ""),
                is_learner=bool(member.get("isLearner", False)),
                peer_urls=tuple(member.get("peerURLs", [])),
            )
            for member in members
        ]

    def promote(self, member_id: str) -> None:
        """Promote a learner with ``etcdctl member promote``.

        Raises:
            MemberPromotionError: If etcd rejects the promotion.
            ConsensusStoreError: If etcdctl cannot be run or times out.
        """
        try:
            result = self._runner.run(
                self._etcdctl("member", "promote", member_id),
                timeout=self.settings.command_timeout,
            )
        except CommandExecutionError as e:
            raise ConsensusStoreError(
                f"promoting member {member_id} failed: {e.message}"
            ) from e
        if not result.ok:
            reason = result.stderr.strip() or result.stdout.strip()
            raise MemberPromotionError(member_id, reason)

    def remove_member(self, member_id: str) -> None:
        """Remove a member with ``etcdctl member remove``.

        Raises:
            ConsensusStoreError: If etcd refuses the removal.
        """
        try:
            run_checked(
                self._runner,
                self._etcdctl("member", "remove", member_id),
                timeout=self.settings.command_timeout,
            )
        except CommandExecutionError as e:
            raise ConsensusStoreError(
                f"removing member {member_id} failed: {e.message}"
            ) from e

    def replication_progress(self, member_id: str) -> ReplicationProgress:
        """Compare the member's raft index with the leader's.

        Queries ``endpoint status --cluster``. etcdctl exits non-zero when a
        single endpoint is down but still prints the reachable ones, so the
        output is parsed regardless of status. A member whose endpoint did
        not answer is reported at index 0.

        Raises:
            ConsensusStoreError: If etcdctl cannot be run, no endpoint
                answered or no leader is known.
        """
        try:
            result = self._runner.run(
                self._etcdctl("endpoint", "status", "--cluster", "-w", "json"),
                timeout=self.settings.command_timeout,
            )
        except CommandExecutionError as e:
            raise ConsensusStoreError(f"endpoint status failed: {e.message}") from e
        try:
            statuses = json.loads(result.stdout) if result.stdout.strip() else []
        except json.JSONDecodeError as e:
            raise ConsensusStoreError(f"endpoint status returned invalid JSON: {e}") from e

        if not statuses:
            raise ConsensusStoreError(
                f"no etcd endpoint answered: {result.stderr.strip()}"
            )

        indexes: dict[str, int] = {}
        leader_id: str | None = None
        for entry in statuses:
            status = entry.get("Status", {})
            header = status.get("header", {})
            if "member_id" not in header:
                continue
            indexes[_member_hex(header["member_id"])] = int(status.get("raftIndex", 0))
            if status.get("leader"):
                leader_id = _member_hex(status["leader"])

        if leader_id is None or leader_id not in indexes:
            raise ConsensusStoreError("etcd leader is unknown or unreachable")

        return ReplicationProgress(
            member_id=member_id,
            member_index=indexes.get(member_id.lower(), 0),
            leader_index=indexes[leader_id],
        )


# Runtime protocol check
assert isinstance(EtcdctlConsensusStore(SubprocessCommandRunner()), ConsensusStorePort)

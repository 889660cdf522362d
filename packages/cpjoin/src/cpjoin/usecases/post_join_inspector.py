"""PostJoinInspector use case: read-only report of a node after joining."""

from __future__ import annotations

from dataclasses import dataclass

from cpjoin.adapters.ports import (
    ClusterHealthPort,
    FailoverStatePort,
    LoadBalancerControlPort,
    LoggingPort,
)
from cpjoin.domain.exceptions import CPJoinError
from cpjoin.domain.vip import BindDecision
from cpjoin.usecases.endpoint_bind_coordinator import EndpointBindCoordinator


@dataclass(frozen=True)
class PostJoinReport:
    """Snapshot of VIP, load balancer and API state on one node.

    Attributes:
        node_name: The inspected node.
        vip_address: The floating address.
        vip_assigned: True if the VIP is on a local interface.
        load_balancer_running: True if the local load balancer is active.
        api_reachable_via_vip: Health endpoint answered through the VIP.
        api_reachable_locally: Health endpoint answered on this node, or
                               None if no local probe was configured.
        expected: The bind decision for the observed state.
    """

    node_name: str
    vip_address: str
    vip_assigned: bool
    load_balancer_running: bool
    api_reachable_via_vip: bool
    api_reachable_locally: bool | None
    expected: BindDecision

    @property
    def bind_consistent(self) -> bool:
        """True if the load balancer state matches the decision."""
        return self.load_balancer_running == self.expected.should_local_load_balancer_bind_api_port

    def issues(self) -> list[str]:
        """Human-readable problems found, empty when healthy."""
        found = []
        if not self.bind_consistent:
            if self.load_balancer_running:
                found.append(
                    "load balancer is running but should not bind the API port"
                )
            else:
                found.append("load balancer is stopped but should front the VIP")
        if not self.api_reachable_via_vip:
            found.append(f"API not reachable via VIP {self.vip_address}")
        if self.api_reachable_locally is False:
            found.append("API not reachable on this node")
        return found


class PostJoinInspector:
    """Collects a PostJoinReport without changing anything."""

    def __init__(
        self,
        node_name: str,
        vip_address: str,
        failover_state: FailoverStatePort,
        load_balancer: LoadBalancerControlPort,
        vip_health: ClusterHealthPort,
        bind_coordinator: EndpointBindCoordinator,
        local_health: ClusterHealthPort | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        self._node_name = node_name
        self._vip_address = vip_address
        self._failover_state = failover_state
        self._load_balancer = load_balancer
        self._vip_health = vip_health
        self._bind_coordinator = bind_coordinator
        self._local_health = local_health
        self._logger = logger

    def inspect(self) -> PostJoinReport:
        """Read current state and compare it with the bind decision.

        Raises:
            CPJoinError: If VIP assignment cannot be read.
        """
        vip_assigned = self._failover_state.holds_address(self._vip_address)
        expected = EndpointBindCoordinator.decide(
            vip_assigned, self._bind_coordinator.api_server_binds_all_interfaces()
        )
        report = PostJoinReport(
            node_name=self._node_name,
            vip_address=self._vip_address,
            vip_assigned=vip_assigned,
            load_balancer_running=self._load_balancer.is_bound(),
            api_reachable_via_vip=self._probe(self._vip_health),
            api_reachable_locally=(
                self._probe(self._local_health) if self._local_health is not None else None
            ),
            expected=expected,
        )
        if self._logger is not None:
            for issue in report.issues():
                self._logger.warning(f"{self._node_name}: {issue}")
        return report

    def _probe(self, health: ClusterHealthPort) -> bool:
        try:
            return health.healthz()
        except CPJoinError as e:
            if self._logger is not None:
                self._logger.warning(f"health probe failed: {e}")
            return False

"""VIP lease and bind decision value objects."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from cpjoin.domain.exceptions import CPJoinConfigError


@dataclass(frozen=True)
class VipLease:
    """Observed ownership of the floating API address.

    The lease is observed, never decided: the failover daemon owns the
    address and this value object only records what a node last saw.

    Attributes:
        address: The floating IP address.
        owner: Node believed to hold the address, or None if no holder was
               observed.
        observed_at: Unix timestamp of the observation.
    """

    address: str
    owner: str | None
    observed_at: float

    def __post_init__(self) -> None:
        """Validate the floating address."""
        try:
            ipaddress.ip_address(self.address)
        except ValueError as e:
            raise CPJoinConfigError(
                f"VIP address must be an IP address, got: {self.address!r}"
            ) from e

    def is_held_by(self, node_name: str) -> bool:
        return self.owner == node_name


@dataclass(frozen=True)
class BindDecision:
    """Whether the local load balancer should bind the API port.

    Derived from VIP ownership and the API server's bind behavior; never
    stored. See EndpointBindCoordinator.decide for the table.

    Attributes:
        should_local_load_balancer_bind_api_port: The decision itself.
        vip_owned: The VIP ownership the decision was computed from.
        api_server_binds_all_interfaces: The API server bind behavior the
                                         decision was computed from.
    """

    should_local_load_balancer_bind_api_port: bool
    vip_owned: bool
    api_server_binds_all_interfaces: bool

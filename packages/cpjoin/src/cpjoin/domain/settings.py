"""cpjoin settings domain entities."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field

from cpjoin.domain.exceptions import CPJoinConfigError
from cpjoin.domain.retry import PollSpec, RetryPolicy

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}


def parse_duration(value: float | int | str) -> float:
    """Convert a duration to seconds.

    Accepts plain numbers (seconds) or strings such as "500ms", "30s",
    "10m", "2h" and "1d". A bare numeric string is read as seconds.

    Raises:
        CPJoinConfigError: If the value cannot be parsed or is negative.
    """
    if isinstance(value, bool):
        raise CPJoinConfigError(f"invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_PATTERN.match(value)
        if match is None:
            raise CPJoinConfigError(f"invalid duration: {value!r}")
        number, unit = match.groups()
        seconds = float(number) * _DURATION_UNITS[unit or "s"]

    if seconds < 0:
        raise CPJoinConfigError(f"duration cannot be negative, got: {value!r}")
    return seconds


@dataclass(frozen=True)
class VipSettings:
    """Floating API endpoint configuration.

    Attributes:
        address: The virtual IP managed by the failover daemon.
        api_port: Port the API server (and load balancer) serve on.
        interface: Interface the VIP is assigned to, or None to look on all.
    """

    address: str
    api_port: int = 6443
    interface: str | None = None

    def __post_init__(self) -> None:
        """Validate VIP settings."""
        try:
            ipaddress.ip_address(self.address)
        except ValueError as e:
            raise CPJoinConfigError(
                f"vip address must be an IP address, got: {self.address!r}"
            ) from e

        if not 0 < self.api_port < 65536:
            raise CPJoinConfigError(
                f"api_port must be between 1 and 65535, got: {self.api_port}"
            )

    @property
    def endpoint(self) -> str:
        """host:port form used by the join call."""
        host = self.address
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{self.api_port}"


@dataclass(frozen=True)
class CredentialSettings:
    """Validity windows for issued credentials.

    Attributes:
        token_ttl: Bootstrap token lifetime in seconds (default 24h).
        cert_key_ttl: Certificate key lifetime in seconds (default 2h).
                      Must not exceed token_ttl.
    """

    token_ttl: float = 24 * 3600.0
    cert_key_ttl: float = 2 * 3600.0

    def __post_init__(self) -> None:
        """Validate credential lifetimes."""
        if self.token_ttl <= 0 or self.cert_key_ttl <= 0:
            raise CPJoinConfigError("credential lifetimes must be positive")

        if self.cert_key_ttl > self.token_ttl:
            raise CPJoinConfigError("cert_key_ttl cannot exceed token_ttl")


@dataclass(frozen=True)
class PollSettings:
    """Intervals and ceilings of every bounded poll.

    Attributes:
        health_retries: Retries of the cluster health probe.
        health_backoff: Fixed delay between health probes.
        health_timeout: Per-probe HTTP timeout.
        learner_poll_interval: Delay between learner progress checks.
        learner_sync_timeout: Hard ceiling of the learner catch-up wait.
        vip_debounce: How long a changed VIP reading must persist.
        vip_poll_interval: Delay between VIP samples while settling.
        vip_settle_timeout: Ceiling for settling VIP ownership.
    """

    health_retries: int = 3
    health_backoff: float = 5.0
    health_timeout: float = 30.0
    learner_poll_interval: float = 10.0
    learner_sync_timeout: float = 600.0
    vip_debounce: float = 3.0
    vip_poll_interval: float = 1.0
    vip_settle_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate poll settings."""
        if self.health_retries < 0:
            raise CPJoinConfigError("health_retries cannot be negative")

        if self.health_timeout <= 0:
            raise CPJoinConfigError("health_timeout must be positive")

        if self.vip_debounce < 0:
            raise CPJoinConfigError("vip_debounce cannot be negative")

        # Building the specs validates interval/ceiling pairs.
        self.learner_poll_spec()
        self.vip_settle_spec()

    def health_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.health_retries,
            backoff_base=self.health_backoff,
            max_backoff=self.health_backoff,
            strategy="fixed",
        )

    def learner_poll_spec(self) -> PollSpec:
        return PollSpec(
            interval=self.learner_poll_interval, ceiling=self.learner_sync_timeout
        )

    def vip_settle_spec(self) -> PollSpec:
        return PollSpec(
            interval=self.vip_poll_interval, ceiling=self.vip_settle_timeout
        )


@dataclass(frozen=True)
class PromotionSettings:
    """Learner promotion budget.

    Attributes:
        attempts: Total promote calls allowed per join attempt.
        backoff: Linear backoff step; the n-th retry waits n * backoff.
        max_learner_lag: Raft entries a learner may trail the leader by and
                         still count as caught up. Both indexes come from
                         one status query but separate endpoints, so on a
                         busy cluster the leader moves between samples and
                         0 may never be met.
    """

    attempts: int = 5
    backoff: float = 20.0
    max_learner_lag: int = 10

    def __post_init__(self) -> None:
        """Validate promotion settings."""
        if self.attempts < 1:
            raise CPJoinConfigError("promotion attempts must be at least 1")

        if self.backoff <= 0:
            raise CPJoinConfigError("promotion backoff must be positive")

        if self.max_learner_lag < 0:
            raise CPJoinConfigError("max_learner_lag cannot be negative")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.attempts - 1,
            backoff_base=self.backoff,
            max_backoff=self.backoff * self.attempts,
            strategy="linear",
        )


@dataclass(frozen=True)
class EtcdSettings:
    """etcdctl connection settings.

    Attributes:
        endpoints: Client endpoints queried by etcdctl.
        cacert: CA bundle path.
        cert: Client certificate path.
        key: Client key path.
        command_timeout: Seconds before an etcdctl call is abandoned.
    """

    endpoints: tuple[str, ...] = ("https://127.0.0.1:2379",)
    cacert: str = "/etc/kubernetes/pki/etcd/ca.crt"
    cert: str = "/etc/kubernetes/pki/etcd/server.crt"
    key: str = "/etc/kubernetes/pki/etcd/server.key"
    command_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate etcd settings."""
        if isinstance(self.endpoints, list):
            object.__setattr__(self, "endpoints", tuple(self.endpoints))

        if not self.endpoints:
            raise CPJoinConfigError("etcd endpoints cannot be empty")

        if self.command_timeout <= 0:
            raise CPJoinConfigError("etcd command_timeout must be positive")


@dataclass(frozen=True)
class LoadBalancerSettings:
    """Local load balancer control settings.

    Attributes:
        service: systemd unit fronting the API port.
        api_server_binds_all_interfaces: Known API server bind behavior, or
                                         None to probe the listening sockets.
        apply_retries: Retries of an idempotent bind apply.
        apply_backoff: Fixed delay between apply retries.
    """

    service: str = "haproxy"
    api_server_binds_all_interfaces: bool | None = None
    apply_retries: int = 2
    apply_backoff: float = 2.0

    def __post_init__(self) -> None:
        """Validate load balancer settings."""
        if not self.service or not self.service.strip():
            raise CPJoinConfigError("load balancer service cannot be empty")

        if self.apply_retries < 0:
            raise CPJoinConfigError("apply_retries cannot be negative")

    def apply_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.apply_retries,
            backoff_base=self.apply_backoff,
            max_backoff=self.apply_backoff,
            strategy="fixed",
        )


@dataclass(frozen=True)
class JoinSettings:
    """Complete configuration of a control-plane join.

    Domain entity with zero external dependencies.
    """

    node_name: str
    node_address: str
    vip: VipSettings
    credentials: CredentialSettings = field(default_factory=CredentialSettings)
    polling: PollSettings = field(default_factory=PollSettings)
    promotion: PromotionSettings = field(default_factory=PromotionSettings)
    etcd: EtcdSettings = field(default_factory=EtcdSettings)
    load_balancer: LoadBalancerSettings = field(default_factory=LoadBalancerSettings)

    def __post_init__(self) -> None:
        """Validate node identity."""
        self._validate_node_name()
        self._validate_node_address()

    def _validate_node_name(self) -> None:
        if not self.node_name or not self.node_name.strip():
            raise CPJoinConfigError("node_name cannot be empty or whitespace-only")

        if self.node_name != self.node_name.strip():
            raise CPJoinConfigError(
                f"node_name cannot have leading/trailing whitespace, got: {self.node_name!r}"
            )

    def _validate_node_address(self) -> None:
        try:
            ipaddress.ip_address(self.node_address)
        except ValueError as e:
            raise CPJoinConfigError(
                f"node_address must be an IP address, got: {self.node_address!r}"
            ) from e

        if self.node_address == self.vip.address:
            raise CPJoinConfigError("node_address cannot be the VIP address")

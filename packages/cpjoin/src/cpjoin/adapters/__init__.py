"""Interface adapters: Ports plus subprocess, HTTP and logging implementations."""

from cpjoin.adapters.ports import (
    ApiServerBindPort,
    ClusterControlPort,
    ClusterHealthPort,
    CommandResult,
    CommandRunnerPort,
    ConsensusStorePort,
    CredentialIssuerPort,
    EnvironmentNodeIdentityResolver,
    EventEmitterPort,
    FailoverStatePort,
    LoadBalancerControlPort,
    LoggingPort,
    NodeIdentityResolverPort,
    RealSleeper,
    RealTimeProvider,
    SleeperPort,
    TimeProvider,
)
from cpjoin.adapters.command_runner import SubprocessCommandRunner
from cpjoin.adapters.etcdctl_consensus_store import EtcdctlConsensusStore
from cpjoin.adapters.httpx_cluster_health import HTTPXClusterHealth
from cpjoin.adapters.ip_failover_state import IpAddrFailoverState
from cpjoin.adapters.kubeadm_cluster_control import KubeadmClusterControl
from cpjoin.adapters.kubeadm_credential_issuer import KubeadmCredentialIssuer
from cpjoin.adapters.logging_adapter import StdlibLoggingAdapter
from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.adapters.socket_stats_bind_probe import SocketStatsApiServerBindProbe
from cpjoin.adapters.systemd_load_balancer import SystemdLoadBalancerControl

__all__ = [
    "ApiServerBindPort",
    "ClusterControlPort",
    "ClusterHealthPort",
    "CommandResult",
    "CommandRunnerPort",
    "ConsensusStorePort",
    "CredentialIssuerPort",
    "EnvironmentNodeIdentityResolver",
    "EtcdctlConsensusStore",
    "EventEmitterPort",
    "FailoverStatePort",
    "HTTPXClusterHealth",
    "IpAddrFailoverState",
    "KubeadmClusterControl",
    "KubeadmCredentialIssuer",
    "LoadBalancerControlPort",
    "LoggingPort",
    "MetricsPort",
    "NodeIdentityResolverPort",
    "NoOpMetricsAdapter",
    "RealSleeper",
    "RealTimeProvider",
    "SleeperPort",
    "SocketStatsApiServerBindProbe",
    "StdlibLoggingAdapter",
    "SubprocessCommandRunner",
    "SystemdLoadBalancerControl",
    "TimeProvider",
]

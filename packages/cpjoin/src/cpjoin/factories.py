"""Factory functions wiring real adapters into the cpjoin use cases.

Keeps construction in one place so the use cases only ever see ports.
Handles the optional prometheus-client dependency gracefully.
"""

from __future__ import annotations

from cpjoin.adapters.command_runner import SubprocessCommandRunner
from cpjoin.adapters.etcdctl_consensus_store import EtcdctlConsensusStore
from cpjoin.adapters.httpx_cluster_health import HTTPXClusterHealth
from cpjoin.adapters.ip_failover_state import IpAddrFailoverState
from cpjoin.adapters.kubeadm_cluster_control import KubeadmClusterControl
from cpjoin.adapters.kubeadm_credential_issuer import KubeadmCredentialIssuer
from cpjoin.adapters.logging_adapter import StdlibLoggingAdapter
from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.adapters.ports import (
    CommandRunnerPort,
    EventEmitterPort,
    LoggingPort,
    RealSleeper,
    RealTimeProvider,
)
from cpjoin.adapters.socket_stats_bind_probe import SocketStatsApiServerBindProbe
from cpjoin.adapters.systemd_load_balancer import SystemdLoadBalancerControl
from cpjoin.domain.credentials import CredentialWindow
from cpjoin.domain.membership import Node
from cpjoin.domain.settings import JoinSettings
from cpjoin.usecases.bounded_poller import BoundedPoller
from cpjoin.usecases.cluster_reachability import ClusterReachabilityChecker
from cpjoin.usecases.credential_ledger import CredentialLedger
from cpjoin.usecases.endpoint_bind_coordinator import EndpointBindCoordinator
from cpjoin.usecases.join_orchestrator import JoinOrchestrator
from cpjoin.usecases.membership_tracker import MembershipTracker
from cpjoin.usecases.post_join_inspector import PostJoinInspector
from cpjoin.usecases.vip_arbiter import VipArbiter


class PrometheusNotInstalledError(ImportError):
    """Raised when metrics are requested but prometheus-client is missing.

    Install with: pip install cpjoin[metrics]
    """

    def __init__(self) -> None:
        super().__init__(
            "prometheus-client is not installed. "
            "Install with: pip install cpjoin[metrics]"
        )


def create_metrics_adapter(enabled: bool, prefix: str = "cpjoin") -> MetricsPort:
    """Create a Prometheus metrics adapter, or a no-op one when disabled.

    Raises:
        PrometheusNotInstalledError: If enabled and prometheus-client is
            not installed.
    """
    if not enabled:
        return NoOpMetricsAdapter()

    from cpjoin.adapters.prometheus_metrics import PrometheusMetricsAdapter

    try:
        return PrometheusMetricsAdapter(prefix=prefix)
    except ImportError as exc:
        raise PrometheusNotInstalledError() from exc


def _bind_coordinator(
    settings: JoinSettings,
    runner: CommandRunnerPort,
    metrics: MetricsPort,
    logger: LoggingPort,
) -> EndpointBindCoordinator:
    return EndpointBindCoordinator(
        load_balancer=SystemdLoadBalancerControl(runner, settings.load_balancer.service),
        api_server_bind=SocketStatsApiServerBindProbe(runner, settings.vip.api_port),
        api_server_binds_all_interfaces=settings.load_balancer.api_server_binds_all_interfaces,
        retry_policy=settings.load_balancer.apply_retry_policy(),
        metrics=metrics,
        logger=logger,
    )


def _vip_arbiter(
    settings: JoinSettings,
    runner: CommandRunnerPort,
    poller: BoundedPoller,
    bind_coordinator: EndpointBindCoordinator,
    metrics: MetricsPort,
    event_emitter: EventEmitterPort | None,
    logger: LoggingPort,
) -> VipArbiter:
    arbiter = VipArbiter(
        IpAddrFailoverState(runner, settings.vip.interface),
        settings.vip.address,
        settings.node_name,
        debounce_seconds=settings.polling.vip_debounce,
        time_provider=RealTimeProvider(),
        poller=poller,
        poll_interval=settings.polling.vip_poll_interval,
        event_emitter=event_emitter,
        metrics=metrics,
        logger=logger,
    )
    arbiter.subscribe(bind_coordinator.on_ownership_change)
    return arbiter


def create_credential_ledger(
    settings: JoinSettings,
    runner: CommandRunnerPort | None = None,
    logger: LoggingPort | None = None,
) -> CredentialLedger:
    """Create a CredentialLedger that issues through kubeadm.

    Meant for the founding node.
    """
    runner = runner or SubprocessCommandRunner()
    return CredentialLedger(
        issuer=KubeadmCredentialIssuer(runner),
        settings=settings.credentials,
        logger=logger or StdlibLoggingAdapter(node_name=settings.node_name),
    )


def create_join_orchestrator(
    settings: JoinSettings,
    window: CredentialWindow,
    runner: CommandRunnerPort | None = None,
    metrics: MetricsPort | None = None,
    event_emitter: EventEmitterPort | None = None,
    logger: LoggingPort | None = None,
) -> JoinOrchestrator:
    """Create a JoinOrchestrator for this node from settings.

    Wires kubeadm, etcdctl, ip, ss and systemctl adapters behind the ports
    and subscribes the bind coordinator to VIP ownership changes.

    Args:
        settings: Complete join configuration.
        window: Credentials issued by the founding node.
        runner: Command runner shared by all subprocess adapters.
        metrics: Metrics port. Defaults to no-op.
        event_emitter: Optional receiver of join and VIP events.
        logger: Logging port. Defaults to the "cpjoin" logger.

    Returns:
        A JoinOrchestrator ready to run() once.
    """
    runner = runner or SubprocessCommandRunner()
    metrics = metrics or NoOpMetricsAdapter()
    logger = logger or StdlibLoggingAdapter(node_name=settings.node_name)
    time_provider = RealTimeProvider()
    sleeper = RealSleeper()
    poller = BoundedPoller(time_provider, sleeper)

    consensus_store = EtcdctlConsensusStore(runner, settings.etcd)
    health = HTTPXClusterHealth(
        settings.vip.endpoint, timeout=settings.polling.health_timeout
    )
    cluster_control = KubeadmClusterControl(
        runner, settings.vip, consensus_store, health
    )
    tracker = MembershipTracker(
        consensus_store,
        poller=poller,
        poll_interval=settings.polling.learner_poll_interval,
        max_learner_lag=settings.promotion.max_learner_lag,
        logger=logger,
    )
    bind_coordinator = _bind_coordinator(settings, runner, metrics, logger)
    arbiter = _vip_arbiter(
        settings, runner, poller, bind_coordinator, metrics, event_emitter, logger
    )

    return JoinOrchestrator(
        node=Node(settings.node_name, settings.node_address),
        window=window,
        ledger=CredentialLedger(settings=settings.credentials, time_provider=time_provider),
        cluster_control=cluster_control,
        tracker=tracker,
        arbiter=arbiter,
        bind_coordinator=bind_coordinator,
        reachability=ClusterReachabilityChecker(
            health,
            retry_policy=settings.polling.health_retry_policy(),
            time_provider=time_provider,
            sleeper=sleeper,
            logger=logger,
        ),
        polling=settings.polling,
        promotion=settings.promotion,
        sleeper=sleeper,
        event_emitter=event_emitter,
        metrics=metrics,
        logger=logger,
    )


def create_post_join_inspector(
    settings: JoinSettings,
    runner: CommandRunnerPort | None = None,
    logger: LoggingPort | None = None,
) -> PostJoinInspector:
    """Create a read-only PostJoinInspector for this node."""
    runner = runner or SubprocessCommandRunner()
    logger = logger or StdlibLoggingAdapter(node_name=settings.node_name)
    return PostJoinInspector(
        node_name=settings.node_name,
        vip_address=settings.vip.address,
        failover_state=IpAddrFailoverState(runner, settings.vip.interface),
        load_balancer=SystemdLoadBalancerControl(runner, settings.load_balancer.service),
        vip_health=HTTPXClusterHealth(
            settings.vip.endpoint, timeout=settings.polling.health_timeout
        ),
        bind_coordinator=_bind_coordinator(settings, runner, NoOpMetricsAdapter(), logger),
        local_health=HTTPXClusterHealth(
            f"127.0.0.1:{settings.vip.api_port}", timeout=settings.polling.health_timeout
        ),
        logger=logger,
    )


def create_vip_watcher(
    settings: JoinSettings,
    runner: CommandRunnerPort | None = None,
    metrics: MetricsPort | None = None,
    event_emitter: EventEmitterPort | None = None,
    logger: LoggingPort | None = None,
) -> VipArbiter:
    """Create a VipArbiter that rebinds the load balancer on failover.

    For a node that already joined: call ``watch(stop_event.is_set)`` on
    the result to keep the load balancer in step with VIP ownership.
    """
    runner = runner or SubprocessCommandRunner()
    metrics = metrics or NoOpMetricsAdapter()
    logger = logger or StdlibLoggingAdapter(node_name=settings.node_name)
    poller = BoundedPoller(RealTimeProvider(), RealSleeper())
    bind_coordinator = _bind_coordinator(settings, runner, metrics, logger)
    return _vip_arbiter(
        settings, runner, poller, bind_coordinator, metrics, event_emitter, logger
    )

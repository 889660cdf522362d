"""Prometheus metrics adapter for cpjoin.

Implements MetricsPort using prometheus-client library.
Gracefully handles missing prometheus-client (raises ImportError at init).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cpjoin.domain.events import JoinStage

if TYPE_CHECKING:
    from prometheus_client import Gauge


class PrometheusMetricsAdapter:
    """Prometheus implementation of MetricsPort.

    Creates and manages Prometheus gauges for join and VIP state.
    All gauges use a configurable prefix (default 'cpjoin_').

    This adapter requires prometheus-client to be installed:
        pip install cpjoin[metrics]

    Example:
        >>> adapter = PrometheusMetricsAdapter(prefix="k8s_cpjoin")
        >>> adapter.set_vip_owned(True)  # Sets k8s_cpjoin_vip_owned to 1
        >>> adapter.set_join_stage("promoting")  # Sets stage gauge to 5

    Raises:
        ImportError: If prometheus-client is not installed.
    """

    def __init__(self, prefix: str = "cpjoin") -> None:
        """Initialize Prometheus gauges.

        Args:
            prefix: Metric name prefix. Defaults to "cpjoin".

        Raises:
            ImportError: If prometheus-client is not installed.
        """
        # Import here to make prometheus-client optional
        from prometheus_client import Gauge

        self._join_stage: Gauge = Gauge(
            f"{prefix}_join_stage",
            "Join stage ordinal: 0=idle ... 7=done, 8=failed",
        )
        self._join_failed: Gauge = Gauge(
            f"{prefix}_join_failed",
            "Join attempt failed: 1=yes, 0=no",
        )
        self._vip_owned: Gauge = Gauge(
            f"{prefix}_vip_owned",
            "Settled VIP ownership on this node: 1=owned, 0=not owned",
        )
        self._load_balancer_bound: Gauge = Gauge(
            f"{prefix}_load_balancer_bound",
            "Local load balancer bound to the API port: 1=bound, 0=unbound",
        )
        self._promotion_attempts: Gauge = Gauge(
            f"{prefix}_promotion_attempts",
            "Promote calls made during the current join attempt",
        )

    def set_join_stage(self, stage: str) -> None:
        """Set join stage gauge to the stage's ordinal.

        Args:
            stage: JoinStage value. Unknown values are ignored.
        """
        try:
            ordinal = JoinStage(stage).ordinal
        except ValueError:
            return
        self._join_stage.set(ordinal)

    def set_join_failed(self, failed: bool) -> None:
        self._join_failed.set(1 if failed else 0)

    def set_vip_owned(self, owned: bool) -> None:
        self._vip_owned.set(1 if owned else 0)

    def set_load_balancer_bound(self, bound: bool) -> None:
        self._load_balancer_bound.set(1 if bound else 0)

    def set_promotion_attempts(self, attempts: int) -> None:
        self._promotion_attempts.set(attempts)

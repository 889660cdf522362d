"""EndpointBindCoordinator use case for load balancer / API server port arbitration."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.adapters.ports import (
    ApiServerBindPort,
    LoadBalancerControlPort,
    LoggingPort,
    RealSleeper,
    SleeperPort,
)
from cpjoin.domain.exceptions import CPJoinError, LoadBalancerControlError
from cpjoin.domain.retry import RetryPolicy
from cpjoin.domain.vip import BindDecision


@dataclass(frozen=True)
class BindApplyResult:
    """Outcome of applying a bind decision.

    Attributes:
        decision: The decision that was applied.
        applied: True if the load balancer reached the decided state.
        attempts: Apply calls made, retries included.
        error: Last error message when not applied.
    """

    decision: BindDecision
    applied: bool
    attempts: int
    error: str | None = None


class EndpointBindCoordinator:
    """Keeps the local load balancer off the API port when it would conflict.

    Reactive: it re-evaluates when the VIP arbiter reports an ownership
    change and has no poll loop of its own. Applying is idempotent, so
    duplicate notifications are harmless.
    """

    def __init__(
        self,
        load_balancer: LoadBalancerControlPort,
        api_server_bind: ApiServerBindPort | None = None,
        api_server_binds_all_interfaces: bool | None = None,
        retry_policy: RetryPolicy | None = None,
        sleeper: SleeperPort | None = None,
        metrics: MetricsPort | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            load_balancer: Port starting and stopping the load balancer.
            api_server_bind: Probe for the API server's listening address,
                             used when the bind behavior is not configured.
            api_server_binds_all_interfaces: Known bind behavior, or None
                                             to probe.
            retry_policy: Budget for re-applying after a failure.
            sleeper: Waits between apply retries.
            metrics: Receives the load balancer bound gauge.
            logger: Optional logging port.
        """
        self._load_balancer = load_balancer
        self._api_server_bind = api_server_bind
        self._configured_binds_all = api_server_binds_all_interfaces
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=2, backoff_base=2.0, max_backoff=2.0, strategy="fixed"
        )
        self._sleeper = sleeper or RealSleeper()
        self._metrics = metrics or NoOpMetricsAdapter()
        self._logger = logger
        self._lock = threading.Lock()

    @staticmethod
    def decide(vip_owned: bool, api_server_binds_all_interfaces: bool) -> BindDecision:
        """Decide whether the local load balancer binds the API port.

        | vip_owned | binds all interfaces | bind |
        |-----------|----------------------|------|
        | True      | True                 | no: API server already serves the VIP |
        | True      | False                | yes: load balancer fronts the VIP |
        | False     | any                  | no: node is not authoritative |
        """
        return BindDecision(
            should_local_load_balancer_bind_api_port=vip_owned
            and not api_server_binds_all_interfaces,
            vip_owned=vip_owned,
            api_server_binds_all_interfaces=api_server_binds_all_interfaces,
        )

    def api_server_binds_all_interfaces(self) -> bool:
        """Return the configured bind behavior, probing when unset.

        Without configuration or a working probe the API server is assumed
        to bind all interfaces, kube-apiserver's default. That keeps the
        load balancer off the port.
        """
        if self._configured_binds_all is not None:
            return self._configured_binds_all

        if self._api_server_bind is None:
            return True

        try:
            return self._api_server_bind.binds_all_interfaces()
        except CPJoinError as e:
            if self._logger is not None:
                self._logger.warning(
                    f"probing API server bind address failed, assuming wildcard: {e}"
                )
            return True

    def apply(self, decision: BindDecision) -> BindApplyResult:
        """Bring the load balancer to the decided state.

        Idempotent. Failures are retried under the retry policy and the
        last error is returned in the result, not raised.
        """
        action = (
            self._load_balancer.enable_and_bind
            if decision.should_local_load_balancer_bind_api_port
            else self._load_balancer.disable_and_unbind
        )
        verb = "bind" if decision.should_local_load_balancer_bind_api_port else "unbind"

        with self._lock:
            attempt = 0
            while True:
                try:
                    action()
                except LoadBalancerControlError as e:
                    if self._logger is not None:
                        self._logger.warning(
                            f"load balancer {verb} attempt {attempt + 1} failed: {e}"
                        )
                    if not self._retry_policy.should_retry(attempt):
                        return BindApplyResult(decision, False, attempt + 1, str(e))
                    self._sleeper.sleep(self._retry_policy.calculate_backoff(attempt))
                    attempt += 1
                    continue

                self._metrics.set_load_balancer_bound(
                    decision.should_local_load_balancer_bind_api_port
                )
                if self._logger is not None:
                    self._logger.info(f"load balancer {verb} applied")
                return BindApplyResult(decision, True, attempt + 1)

    def reconcile(self, vip_owned: bool) -> BindApplyResult:
        """Decide from current state and apply."""
        decision = self.decide(vip_owned, self.api_server_binds_all_interfaces())
        return self.apply(decision)

    def on_ownership_change(self, vip_owned: bool) -> None:
        """VipArbiter listener: reconcile on every settled change."""
        result = self.reconcile(vip_owned)
        if not result.applied and self._logger is not None:
            self._logger.error(
                f"load balancer reconcile failed after {result.attempts} attempts: "
                f"{result.error}"
            )

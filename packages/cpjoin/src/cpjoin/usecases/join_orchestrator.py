"""JoinOrchestrator use case: the control-plane join state machine.

Runs one join attempt for one node through

    IDLE -> CREDENTIAL_CHECK -> AWAITING_CLUSTER_REACHABLE -> JOINING
         -> AWAITING_LEARNER_SYNC -> PROMOTING -> RECONCILING -> DONE

with FAILED reachable from every non-terminal stage. Stages run strictly
in order; a stage only starts after its predecessor succeeded. Every
failure ends the attempt with a JoinReport naming the stage and failure
kind, since each kind has a different recovery procedure.
"""

from __future__ import annotations

import threading

from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.adapters.ports import (
    ClusterControlPort,
    EventEmitterPort,
    LoggingPort,
    RealSleeper,
    SleeperPort,
)
from cpjoin.domain.credentials import CredentialWindow
from cpjoin.domain.events import JoinEvent, JoinStage
from cpjoin.domain.exceptions import CPJoinError, JoinStateError
from cpjoin.domain.membership import MemberRecord, Node, NodeRole, ReplicationProgress
from cpjoin.domain.report import FailureKind, JoinFailure, JoinReport
from cpjoin.domain.settings import PollSettings, PromotionSettings
from cpjoin.usecases.cluster_reachability import ClusterReachabilityChecker
from cpjoin.usecases.credential_ledger import CredentialLedger
from cpjoin.usecases.endpoint_bind_coordinator import EndpointBindCoordinator
from cpjoin.usecases.membership_tracker import MembershipTracker, RejectionReason
from cpjoin.usecases.vip_arbiter import VipArbiter


class JoinOrchestrator:
    """Drives one node from join intent to steady-state voting member.

    One instance per join attempt. Instances for different nodes may run
    concurrently on separate threads; they share only the read-only
    credential window and the external consensus store.

    Retry rules:
        - Credential expiry is never retried here; re-issuing is an
          explicit operator action.
        - The health probe is retried under the reachability checker's
          small fixed budget.
        - The join call is made exactly once. It is not idempotent, so a
          failure ends the attempt and may leave a learner to clean up.
        - Promotion is retried under the promotion budget with linear
          backoff, waiting for learner catch-up before each retry.
        - Bind apply is retried by the bind coordinator.

    Cancellation:
        cancel() is honored between stages and inside every bounded poll.
        Before JOINING nothing external has changed; from JOINING on the
        report requires cleanup.
    """

    def __init__(
        self,
        node: Node,
        window: CredentialWindow,
        ledger: CredentialLedger,
        cluster_control: ClusterControlPort,
        tracker: MembershipTracker,
        arbiter: VipArbiter,
        bind_coordinator: EndpointBindCoordinator,
        reachability: ClusterReachabilityChecker | None = None,
        polling: PollSettings | None = None,
        promotion: PromotionSettings | None = None,
        sleeper: SleeperPort | None = None,
        event_emitter: EventEmitterPort | None = None,
        metrics: MetricsPort | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            node: The joining node. Its role is updated as the join advances.
            window: Credentials issued by the founding node.
            ledger: Validates the credential window.
            cluster_control: Performs the join call.
            tracker: Waits for learner catch-up and promotes.
            arbiter: Observes VIP ownership for reconciliation.
            bind_coordinator: Reconciles the local load balancer.
            reachability: Health poll. Defaults to probing cluster_control
                          under the polling settings' retry policy.
            polling: Poll intervals and ceilings.
            promotion: Promotion retry budget.
            sleeper: Waits between promotion attempts.
            event_emitter: Receives a JoinEvent per stage transition.
            metrics: Receives stage, failure and promotion gauges.
            logger: Optional logging port.
        """
        self._node = node
        self._window = window
        self._ledger = ledger
        self._cluster_control = cluster_control
        self._tracker = tracker
        self._arbiter = arbiter
        self._bind_coordinator = bind_coordinator
        self._polling = polling or PollSettings()
        self._promotion = promotion or PromotionSettings()
        self._sleeper = sleeper or RealSleeper()
        self._reachability = reachability or ClusterReachabilityChecker(
            cluster_control,
            retry_policy=self._polling.health_retry_policy(),
            sleeper=self._sleeper,
            logger=logger,
        )
        self._event_emitter = event_emitter
        self._metrics = metrics or NoOpMetricsAdapter()
        self._logger = logger

        self._state = JoinStage.IDLE
        self._history: list[JoinEvent] = []
        self._member_id: str | None = None
        self._started = False
        self._cancel_requested = threading.Event()
        self._lock = threading.Lock()

    @property
    def node(self) -> Node:
        return self._node

    @property
    def state(self) -> JoinStage:
        with self._lock:
            return self._state

    @property
    def history(self) -> list[JoinEvent]:
        """Stage transitions so far, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def member_id(self) -> str | None:
        return self._member_id

    @property
    def arbiter(self) -> VipArbiter:
        """VIP arbiter wired to the bind coordinator; watch() it after DONE."""
        return self._arbiter

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next check point."""
        self._cancel_requested.set()

    def _is_cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    def _log(self, level: str, message: str) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(f"{self._node.name}: {message}")

    def run(self) -> JoinReport:
        """Run the join attempt to a terminal state.

        Raises:
            JoinStateError: If this orchestrator already ran.
        """
        with self._lock:
            if self._started:
                raise JoinStateError(
                    f"join attempt for {self._node.name} already ran; "
                    "create a new orchestrator for a fresh attempt"
                )
            self._started = True

        report = self._run_stages()
        self._metrics.set_join_failed(not report.succeeded)
        if report.succeeded:
            self._log("info", report.summary())
        else:
            self._log("error", report.summary())
        return report

    def _run_stages(self) -> JoinReport:
        if self._is_cancelled():
            return self._cancelled()

        self._transition(JoinStage.CREDENTIAL_CHECK)
        failure = self._check_credentials()
        if failure is not None:
            return failure

        if self._is_cancelled():
            return self._cancelled()
        self._transition(JoinStage.AWAITING_CLUSTER_REACHABLE)
        reachability = self._reachability.check(self._is_cancelled)
        if reachability.cancelled:
            return self._cancelled()
        if not reachability.reachable:
            detail = f"cluster health endpoint unreachable after {reachability.attempts} probes"
            if reachability.last_error:
                detail = f"{detail}: {reachability.last_error}"
            return self._fail(
                FailureKind.CLUSTER_UNREACHABLE,
                detail,
                attempts=reachability.attempts,
                elapsed=reachability.elapsed,
            )

        # The reachability wait may have outlived the cert key.
        failure = self._check_credentials()
        if failure is not None:
            return failure

        if self._is_cancelled():
            return self._cancelled()
        self._transition(JoinStage.JOINING)
        try:
            member_id = self._cluster_control.join(self._window, self._node)
        except CPJoinError as e:
            return self._fail(
                FailureKind.JOIN_FAILED,
                str(e),
                attempts=1,
                orphaned_learners=self._orphaned_learners(),
                requires_cleanup=True,
            )
        self._member_id = member_id
        self._node.role = NodeRole.LEARNER
        self._log("info", f"joined as learner {member_id}")

        if self._is_cancelled():
            return self._cancelled()
        self._transition(JoinStage.AWAITING_LEARNER_SYNC)
        progress = self._tracker.await_learner_progress(
            member_id, self._polling.learner_sync_timeout, self._is_cancelled
        )
        if progress.cancelled:
            return self._cancelled()
        if not progress.ready:
            return self._sync_timeout(progress.elapsed, progress.attempts, progress.last_progress)

        if self._is_cancelled():
            return self._cancelled()
        self._transition(JoinStage.PROMOTING)
        failure = self._promote(member_id)
        if failure is not None:
            return failure
        self._node.role = NodeRole.VOTING_MEMBER

        if self._is_cancelled():
            return self._cancelled()
        self._transition(JoinStage.RECONCILING)
        lease = self._arbiter.settle(self._polling.vip_settle_timeout, self._is_cancelled)
        if self._is_cancelled():
            return self._cancelled()
        bind = self._bind_coordinator.reconcile(lease.is_held_by(self._node.name))
        if not bind.applied:
            return self._fail(
                FailureKind.BIND_APPLY_FAILED,
                f"load balancer did not reach the decided state: {bind.error}",
                attempts=bind.attempts,
                requires_cleanup=False,
            )

        self._transition(JoinStage.DONE)
        return JoinReport(
            node_name=self._node.name,
            stage=JoinStage.DONE,
            member_id=member_id,
        )

    def _check_credentials(self) -> JoinReport | None:
        expired = self._ledger.validate(self._window).expired
        if expired is None:
            return None

        return self._fail(
            FailureKind.CREDENTIAL_EXPIRED,
            f"{expired.value} expired before the join call",
            expired=expired,
        )

    def _promote(self, member_id: str) -> JoinReport | None:
        policy = self._promotion.retry_policy()
        last_reason: RejectionReason | None = None
        last_detail = ""
        attempts = 0

        for attempt in range(policy.max_attempts):
            if attempt > 0:
                delay = policy.calculate_backoff(attempt - 1)
                self._log("info", f"retrying promotion in {delay:.0f}s")
                self._sleeper.sleep(delay)
                if self._is_cancelled():
                    return self._cancelled()

                progress = self._tracker.await_learner_progress(
                    member_id, self._polling.learner_sync_timeout, self._is_cancelled
                )
                if progress.cancelled:
                    return self._cancelled()
                if not progress.ready:
                    return self._sync_timeout(
                        progress.elapsed,
                        progress.attempts,
                        progress.last_progress,
                        stage=JoinStage.AWAITING_LEARNER_SYNC,
                    )

            attempts = attempt + 1
            self._metrics.set_promotion_attempts(attempts)
            result = self._tracker.promote(member_id)
            if result.promoted:
                return None

            last_reason, last_detail = result.reason, result.detail
            self._log(
                "warning",
                f"promotion attempt {attempts}/{policy.max_attempts} rejected: "
                f"{result.reason.value if result.reason else 'unknown'}",
            )
            if result.reason is RejectionReason.MEMBER_NOT_FOUND:
                break

        reason = last_reason.value if last_reason else "unknown"
        return self._fail(
            FailureKind.PROMOTION_REJECTED,
            f"{reason}: {last_detail}",
            attempts=attempts,
            requires_cleanup=True,
        )

    def _sync_timeout(
        self,
        elapsed: float,
        attempts: int,
        last_progress: ReplicationProgress | None,
        stage: JoinStage | None = None,
    ) -> JoinReport:
        detail = f"learner did not catch up within {self._polling.learner_sync_timeout:.0f}s"
        if last_progress is not None:
            detail = f"{detail} (lag {last_progress.lag} entries)"
        return self._fail(
            FailureKind.LEARNER_SYNC_TIMEOUT,
            detail,
            stage=stage,
            attempts=attempts,
            elapsed=elapsed,
            last_progress=last_progress,
            orphaned_learners=self._orphaned_learners(),
            requires_cleanup=True,
        )

    def _cancelled(self) -> JoinReport:
        joined = self.state.ordinal >= JoinStage.JOINING.ordinal
        return self._fail(
            FailureKind.CANCELLED,
            "join attempt cancelled by operator",
            orphaned_learners=self._orphaned_learners() if joined else (),
            requires_cleanup=joined,
        )

    def _orphaned_learners(self) -> tuple[MemberRecord, ...]:
        """List learners of this node without touching them."""
        try:
            learners = self._tracker.find_learners(self._node.name, self._node.address)
        except CPJoinError as e:
            self._log("warning", f"could not list learners for the report: {e}")
            return ()
        return tuple(learners)

    def _fail(
        self,
        kind: FailureKind,
        detail: str,
        stage: JoinStage | None = None,
        requires_cleanup: bool = False,
        **failure_fields,
    ) -> JoinReport:
        failed_stage = stage or self.state
        failure = JoinFailure(kind=kind, detail=detail, **failure_fields)
        self._transition(JoinStage.FAILED, reason=f"{kind.value}: {detail}")
        return JoinReport(
            node_name=self._node.name,
            stage=failed_stage,
            failure=failure,
            member_id=self._member_id,
            requires_cleanup=requires_cleanup,
        )

    def _transition(self, to_stage: JoinStage, reason: str | None = None) -> None:
        with self._lock:
            event = JoinEvent(
                node_name=self._node.name,
                from_stage=self._state,
                to_stage=to_stage,
                reason=reason,
            )
            self._state = to_stage
            self._history.append(event)

        self._metrics.set_join_stage(to_stage.value)
        if self._event_emitter is not None:
            self._event_emitter.emit(event)
        self._log("debug", f"{event.from_stage.value} -> {to_stage.value}")

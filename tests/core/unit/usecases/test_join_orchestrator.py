"""Unit tests for the JoinOrchestrator use case."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cpjoin.adapters.fakes import FakeConsensusStore
from cpjoin.domain.credentials import CredentialKind
from cpjoin.domain.events import JoinStage
from cpjoin.domain.exceptions import CommandExecutionError, JoinStateError
from cpjoin.domain.membership import NodeRole, ReplicationProgress
from cpjoin.domain.report import FailureKind

from ..builders import FOUNDER_ID, HOUR, ISSUED_AT, VIP_ADDRESS, build_join_rig

HAPPY_PATH = [
    JoinStage.CREDENTIAL_CHECK,
    JoinStage.AWAITING_CLUSTER_REACHABLE,
    JoinStage.JOINING,
    JoinStage.AWAITING_LEARNER_SYNC,
    JoinStage.PROMOTING,
    JoinStage.RECONCILING,
    JoinStage.DONE,
]


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Run")
class TestJoinHappyPath:
    """Test a join that completes."""

    def test_node_becomes_voting_member(self) -> None:
        rig = build_join_rig()

        report = rig.orchestrator.run()

        assert report.succeeded
        assert report.stage is JoinStage.DONE
        assert report.member_id == rig.orchestrator.member_id
        assert rig.node.role is NodeRole.VOTING_MEMBER
        assert rig.tracker.role_of("k8s-cp2") is NodeRole.VOTING_MEMBER
        assert not report.requires_cleanup

    def test_stages_run_in_order(self) -> None:
        rig = build_join_rig()

        rig.orchestrator.run()

        assert rig.emitter.stages_entered() == HAPPY_PATH
        assert [e.to_stage for e in rig.orchestrator.history] == HAPPY_PATH
        assert rig.orchestrator.state is JoinStage.DONE

    def test_join_called_once_and_promotion_follows_progress(self) -> None:
        rig = build_join_rig(catch_up_after=4)

        rig.orchestrator.run()

        assert len(rig.control.join_calls) == 1
        ops = [op for op, _ in rig.store.calls if op in ("progress", "promote")]
        assert ops == ["progress"] * 4 + ["promote"]

    def test_metrics_track_stages(self) -> None:
        rig = build_join_rig()

        rig.orchestrator.run()

        assert rig.metrics.values("join_stage") == [s.value for s in HAPPY_PATH]
        assert rig.metrics.current("join_failed") is False
        assert rig.metrics.current("promotion_attempts") == 1

    def test_vip_holder_binds_load_balancer(self) -> None:
        rig = build_join_rig(vip_owned=True, api_server_binds_all_interfaces=False)

        assert rig.orchestrator.run().succeeded
        assert rig.load_balancer.is_bound()

    def test_vip_holder_leaves_port_to_wildcard_api_server(self) -> None:
        rig = build_join_rig(vip_owned=True, api_server_binds_all_interfaces=True)

        assert rig.orchestrator.run().succeeded
        assert rig.load_balancer.calls == ["disable"]

    def test_non_holder_unbinds(self) -> None:
        rig = build_join_rig(vip_owned=False)

        rig.orchestrator.run()

        assert rig.load_balancer.calls == ["disable"]
        assert not rig.load_balancer.is_bound()

    def test_run_twice_raises(self) -> None:
        rig = build_join_rig()
        rig.orchestrator.run()

        with pytest.raises(JoinStateError, match="already ran"):
            rig.orchestrator.run()


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.CredentialCheck")
class TestJoinCredentialFailures:
    """Test credential expiry handling."""

    def test_expired_cert_key_fails_before_any_call(self) -> None:
        rig = build_join_rig(now=ISSUED_AT + 3 * HOUR)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.CREDENTIAL_EXPIRED
        assert report.failure.expired is CredentialKind.CERT_KEY
        assert report.stage is JoinStage.CREDENTIAL_CHECK
        assert not report.requires_cleanup
        assert rig.control.health_calls == 0
        assert rig.control.join_calls == []
        assert "Re-upload certificates" in (report.recovery_hint or "")

    def test_expired_token(self) -> None:
        rig = build_join_rig(now=ISSUED_AT + 25 * HOUR)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.expired is CredentialKind.TOKEN

    def test_expiry_during_reachability_wait(self) -> None:
        window_expiry = ISSUED_AT + 2 * HOUR
        rig = build_join_rig(now=window_expiry - 4.0)
        rig.control.script_health(False)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.CREDENTIAL_EXPIRED
        assert report.failure.expired is CredentialKind.CERT_KEY
        assert report.stage is JoinStage.AWAITING_CLUSTER_REACHABLE
        assert rig.control.join_calls == []


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Reachability")
class TestJoinUnreachable:
    """Test an unreachable cluster."""

    def test_unreachable_cluster(self) -> None:
        rig = build_join_rig()
        rig.control.set_healthy(False)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.CLUSTER_UNREACHABLE
        assert report.failure.attempts == 4
        assert report.stage is JoinStage.AWAITING_CLUSTER_REACHABLE
        assert not report.requires_cleanup
        assert rig.control.join_calls == []

    def test_transient_unreachability_is_retried(self) -> None:
        rig = build_join_rig()
        rig.control.script_health(False, False)

        assert rig.orchestrator.run().succeeded
        assert rig.control.health_calls == 3


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Join")
class TestJoinCallFailure:
    """Test a failing join call."""

    def test_join_is_not_retried(self) -> None:
        rig = build_join_rig()
        rig.control.fail_join("kubeadm join failed: context deadline exceeded")

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.JOIN_FAILED
        assert report.failure.attempts == 1
        assert report.stage is JoinStage.JOINING
        assert report.requires_cleanup
        assert len(rig.control.join_calls) == 1
        assert rig.node.role is NodeRole.JOINING

    def test_orphaned_learner_is_listed_not_removed(self) -> None:
        rig = build_join_rig()
        rig.control.fail_join(leave_learner=True)

        report = rig.orchestrator.run()

        assert report.failure is not None
        orphans = report.failure.orphaned_learners
        assert [m.node_name for m in orphans] == ["k8s-cp2"]
        assert rig.store.remove_calls() == []
        assert rig.store.get_member(orphans[0].member_id) is not None

    def test_unreadable_store_leaves_orphan_list_empty(self) -> None:
        rig = build_join_rig()
        rig.control.fail_join()
        rig.store.set_unavailable()

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.JOIN_FAILED
        assert report.failure.orphaned_learners == ()


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.LearnerSync")
class TestJoinLearnerSync:
    """Test waiting for learner catch-up."""

    def test_sync_timeout(self) -> None:
        rig = build_join_rig(catch_up_after=None)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.LEARNER_SYNC_TIMEOUT
        assert report.stage is JoinStage.AWAITING_LEARNER_SYNC
        assert report.failure.elapsed == 600.0
        assert report.failure.attempts == 61
        assert report.failure.last_progress is not None
        assert report.failure.last_progress.lag == 100
        assert report.requires_cleanup
        assert rig.store.promote_calls() == []
        assert rig.node.role is NodeRole.LEARNER

    def test_timed_out_learner_is_left_in_place(self) -> None:
        rig = build_join_rig(catch_up_after=None)

        report = rig.orchestrator.run()

        assert report.member_id is not None
        assert rig.store.get_member(report.member_id) is not None
        assert rig.store.remove_calls() == []


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Promote")
class TestJoinPromotion:
    """Test the promotion retry loop."""

    def test_rejections_are_retried_with_linear_backoff(self) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(2)

        report = rig.orchestrator.run()

        assert report.succeeded
        assert len(rig.store.promote_calls()) == 3
        assert rig.clock.sleeps == [20.0, 40.0]
        assert rig.metrics.values("promotion_attempts") == [1, 2, 3]

    def test_progress_rechecked_before_each_retry(self) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(1)

        rig.orchestrator.run()

        ops = [op for op, _ in rig.store.calls if op in ("progress", "promote")]
        assert ops == ["progress", "promote", "progress", "promote"]

    def test_promotion_budget_is_bounded(self) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(50, "etcdserver: unhealthy cluster")

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.PROMOTION_REJECTED
        assert report.failure.attempts == 5
        assert report.failure.detail.startswith("change_in_progress")
        assert report.stage is JoinStage.PROMOTING
        assert report.requires_cleanup
        assert len(rig.store.promote_calls()) == 5
        assert rig.clock.sleeps == [20.0, 40.0, 60.0, 80.0]
        assert rig.store.remove_calls() == []

    def test_missing_member_stops_retries(self) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(1, "etcdserver: member not found")

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.PROMOTION_REJECTED
        assert report.failure.attempts == 1
        assert rig.clock.sleeps == []

    def test_resync_timeout_between_retries(self) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(1)

        def fall_behind(now: float) -> None:
            member_id = rig.orchestrator.member_id
            if member_id is not None:
                rig.store.set_member_index(member_id, 10)

        rig.clock.on_sleep(fall_behind)
        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.LEARNER_SYNC_TIMEOUT
        assert report.stage is JoinStage.AWAITING_LEARNER_SYNC
        assert len(rig.store.promote_calls()) == 1


class StalledEtcdctlStore(FakeConsensusStore):
    """Store whose etcdctl calls time out for the named operations."""

    def __init__(self, *stalled: str) -> None:
        super().__init__(leader_index=100)
        self.stalled = set(stalled)
        self.add_member(FOUNDER_ID, "k8s-cp1", is_learner=False, member_index=100)
        self.catch_up_new_members_after(1)

    def _stall(self, op: str) -> None:
        if op in self.stalled:
            raise CommandExecutionError(
                "command timed out after 30.0s: etcdctl",
                args_=("etcdctl", op),
            )

    def promote(self, member_id: str) -> None:
        self._stall("promote")
        super().promote(member_id)

    def replication_progress(self, member_id: str) -> ReplicationProgress:
        self._stall("progress")
        return super().replication_progress(member_id)


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.StoreErrors")
class TestJoinStoreCommandFailures:
    """Test that store command failures end in a report."""

    def test_progress_timeouts_end_in_sync_timeout(self) -> None:
        rig = build_join_rig(store=StalledEtcdctlStore("progress"))

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.LEARNER_SYNC_TIMEOUT
        assert report.stage is JoinStage.AWAITING_LEARNER_SYNC
        assert report.failure.last_progress is None
        assert report.requires_cleanup
        assert rig.orchestrator.state is JoinStage.FAILED

    def test_promote_timeouts_end_in_store_error_rejection(self) -> None:
        store = StalledEtcdctlStore("promote")
        rig = build_join_rig(store=store)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.PROMOTION_REJECTED
        assert report.failure.detail.startswith("store_error")
        assert report.failure.attempts == 5
        assert report.stage is JoinStage.PROMOTING
        assert report.requires_cleanup


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Reconcile")
class TestJoinReconcile:
    """Test bind reconciliation after promotion."""

    def test_bind_failure_keeps_membership(self) -> None:
        rig = build_join_rig(vip_owned=True)
        rig.load_balancer.fail_next(10)

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.BIND_APPLY_FAILED
        assert report.failure.attempts == 3
        assert report.stage is JoinStage.RECONCILING
        assert not report.requires_cleanup
        assert rig.node.role is NodeRole.VOTING_MEMBER
        assert "re-run bind reconciliation" in (report.recovery_hint or "")

    def test_vip_settles_before_reconcile(self) -> None:
        rig = build_join_rig(vip_owned=False)
        rig.arbiter.observe()
        rig.failover.assign(VIP_ADDRESS)

        report = rig.orchestrator.run()

        assert report.succeeded
        assert rig.load_balancer.is_bound()
        assert rig.clock.total_slept == 3.0


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.SteadyState")
class TestJoinSteadyState:
    """Test VIP failover after the join completed."""

    def test_vip_migration_after_done_flips_load_balancer(self) -> None:
        rig = build_join_rig(vip_owned=False, api_server_binds_all_interfaces=False)
        assert rig.orchestrator.run().succeeded
        assert not rig.load_balancer.is_bound()

        rig.failover.assign(VIP_ADDRESS)
        rig.orchestrator.arbiter.watch(lambda: False, duration=10.0)
        assert rig.load_balancer.is_bound()

        rig.failover.release(VIP_ADDRESS)
        rig.orchestrator.arbiter.watch(lambda: False, duration=10.0)
        assert not rig.load_balancer.is_bound()
        assert rig.metrics.current("vip_owned") is False


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Cancel")
class TestJoinCancellation:
    """Test cancellation."""

    def test_cancel_before_run(self) -> None:
        rig = build_join_rig()
        rig.orchestrator.cancel()

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.CANCELLED
        assert not report.requires_cleanup
        assert rig.control.join_calls == []

    def test_cancel_during_learner_sync(self) -> None:
        rig = build_join_rig(catch_up_after=None)
        rig.clock.on_sleep(lambda now: rig.orchestrator.cancel())

        report = rig.orchestrator.run()

        assert report.failure is not None
        assert report.failure.kind is FailureKind.CANCELLED
        assert report.stage is JoinStage.AWAITING_LEARNER_SYNC
        assert report.requires_cleanup
        assert len(report.failure.orphaned_learners) == 1
        assert rig.store.promote_calls() == []
        assert rig.clock.total_slept == 10.0

    def test_failed_event_carries_reason(self) -> None:
        rig = build_join_rig()
        rig.orchestrator.cancel()

        rig.orchestrator.run()

        last = rig.emitter.join_events[-1]
        assert last.to_stage is JoinStage.FAILED
        assert last.reason is not None
        assert last.reason.startswith("cancelled")
        assert rig.metrics.current("join_failed") is True


@pytest.mark.unit
@pytest.mark.tier(3)
@pytest.mark.property
@pytest.mark.tra("UseCase.JoinOrchestrator.Promote")
class TestJoinOrchestratorProperties:
    """Property-based tests for promotion ordering and budget."""

    @settings(max_examples=40, deadline=None)
    @given(catch_up_on=st.integers(min_value=1, max_value=80))
    def test_never_promotes_before_catch_up(self, catch_up_on: int) -> None:
        rig = build_join_rig(catch_up_after=catch_up_on)

        report = rig.orchestrator.run()

        ops = [op for op, _ in rig.store.calls if op in ("progress", "promote")]
        if catch_up_on <= 61:
            assert report.succeeded
            assert ops.index("promote") == catch_up_on
        else:
            assert report.failure is not None
            assert report.failure.kind is FailureKind.LEARNER_SYNC_TIMEOUT
            assert "promote" not in ops

    @settings(max_examples=30, deadline=None)
    @given(rejections=st.integers(min_value=0, max_value=12))
    def test_promotion_calls_are_bounded(self, rejections: int) -> None:
        rig = build_join_rig()
        rig.store.reject_next_promotions(rejections)

        report = rig.orchestrator.run()

        assert len(rig.store.promote_calls()) == min(rejections + 1, 5)
        assert report.succeeded is (rejections < 5)

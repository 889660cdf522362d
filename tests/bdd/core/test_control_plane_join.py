"""BDD step definitions for control_plane_join.feature.

Drives the JoinOrchestrator end to end against in-memory fakes sharing a
fake clock, so minute-long polls run instantly.
"""

from __future__ import annotations

from typing import Any

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from cpjoin.adapters.fakes import FakeClock, FakeClusterControl, FakeConsensusStore
from cpjoin.domain.events import JoinEvent, JoinStage
from cpjoin.domain.report import FailureKind

from ...core.unit.builders import FOUNDER_ID, HOUR, ISSUED_AT, build_join_rig

# Type alias for BDD context dict
Context = dict[str, Any]

FEATURE = "../../features/core/control_plane_join.feature"

HAPPY_PATH = [
    JoinStage.CREDENTIAL_CHECK,
    JoinStage.AWAITING_CLUSTER_REACHABLE,
    JoinStage.JOINING,
    JoinStage.AWAITING_LEARNER_SYNC,
    JoinStage.PROMOTING,
    JoinStage.RECONCILING,
    JoinStage.DONE,
]


# ----- Scenarios (linked to feature file) -----


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator")
@scenario(FEATURE, "Fresh window joins all the way to a voting member")
def test_fresh_window_joins() -> None:
    pass


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.LearnerSync")
@scenario(
    FEATURE,
    "Learner that never catches up times out and can be retried after cleanup",
)
def test_learner_sync_timeout_then_retry() -> None:
    pass


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.JoinOrchestrator.Promote")
@scenario(FEATURE, "Promotion rejected twice then accepted within budget")
def test_promotion_rejected_then_accepted() -> None:
    pass


# ----- Fixtures -----


@pytest.fixture
def context() -> Context:
    """Shared context for passing state between steps."""
    return {
        "store": None,
        "control": None,
        "clock": None,
        "window": None,
        "node_name": None,
        "rig": None,
        "report": None,
        "first_report": None,
    }


# ----- Background steps -----


@given(parsers.parse('a one-member cluster founded by "{founder}"'))
def given_cluster(context: Context, founder: str) -> None:
    store = FakeConsensusStore(leader_index=100)
    store.add_member(FOUNDER_ID, founder, is_learner=False, member_index=100)
    context["store"] = store
    context["control"] = FakeClusterControl(store)


# ----- Given steps -----


def _build_rig(context: Context) -> None:
    context["rig"] = build_join_rig(
        node_name=context["node_name"],
        window=context["window"],
        store=context["store"],
        control=context["control"],
        clock=context["clock"],
    )


@given(parsers.parse('a joining node "{node_name}" at {hours:d} hour after issue'))
def given_joining_node(context: Context, node_name: str, hours: int) -> None:
    context["node_name"] = node_name
    context["clock"] = FakeClock(start=ISSUED_AT + hours * HOUR)
    _build_rig(context)


@given("the new learner catches up on its first progress check")
@when("the new learner catches up on its first progress check")
def given_learner_catches_up(context: Context) -> None:
    context["store"].catch_up_new_members_after(1)


@given("the new learner never catches up")
def given_learner_never_catches_up(context: Context) -> None:
    context["store"].catch_up_new_members_after(None)


@given(parsers.parse("the consensus store rejects the next {count:d} promotions"))
def given_rejections(context: Context, count: int) -> None:
    context["store"].reject_next_promotions(count)


# ----- When steps -----


@when("the join attempt runs")
def when_join_runs(context: Context) -> None:
    context["report"] = context["rig"].orchestrator.run()


@when("the operator removes the orphaned learner")
def when_operator_removes_learner(context: Context) -> None:
    context["first_report"] = context["report"]
    for learner in context["report"].failure.orphaned_learners:
        context["store"].remove_member(learner.member_id)


@when("a fresh join attempt runs for the same node")
def when_fresh_attempt(context: Context) -> None:
    _build_rig(context)
    context["report"] = context["rig"].orchestrator.run()


# ----- Then steps -----


@then("the join completes")
def then_join_completes(context: Context) -> None:
    report = context["report"]
    assert report.succeeded, report.summary()
    assert report.stage is JoinStage.DONE
    assert report.member_id is not None
    assert not report.requires_cleanup


@then(parsers.parse('"{node_name}" is a voting member of the cluster'))
def then_voting_member(context: Context, node_name: str) -> None:
    members = [m for m in context["store"].list_members() if m.node_name == node_name]
    assert len(members) == 1
    assert not members[0].is_learner
    assert members[0].member_id == context["report"].member_id


@then("the join passed through every stage in order")
def then_stage_order(context: Context) -> None:
    stages = [event.to_stage for event in context["rig"].orchestrator.history]
    assert stages == HAPPY_PATH


@then(parsers.parse('the join fails at stage "{stage}" with kind "{kind}"'))
def then_join_fails(context: Context, stage: str, kind: str) -> None:
    report = context["report"]
    assert not report.succeeded
    assert report.stage is JoinStage(stage)
    assert report.failure.kind is FailureKind(kind)


@then("the report requires cleanup and lists the orphaned learner")
def then_requires_cleanup(context: Context) -> None:
    report = context["report"]
    assert report.requires_cleanup
    orphans = report.failure.orphaned_learners
    assert [learner.member_id for learner in orphans] == [report.member_id]
    # Listed, never removed.
    assert context["store"].get_member(report.member_id) is not None


@then("no member was promoted")
def then_no_promotion(context: Context) -> None:
    assert context["store"].promote_calls() == []


@then(parsers.parse("the learner was promoted after {count:d} promote calls"))
def then_promote_calls(context: Context, count: int) -> None:
    member_id = context["report"].member_id
    assert context["store"].promote_calls() == [member_id] * count
    assert context["rig"].metrics.current("promotion_attempts") == count


@then("no join event reports a failure")
def then_no_failure_event(context: Context) -> None:
    events = [e for e in context["rig"].emitter.events if isinstance(e, JoinEvent)]
    assert events
    assert all(event.to_stage is not JoinStage.FAILED for event in events)

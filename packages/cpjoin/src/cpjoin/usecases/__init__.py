"""Use cases: Application logic layer."""

from cpjoin.usecases.bounded_poller import BoundedPoller, PollOutcome
from cpjoin.usecases.cluster_reachability import (
    ClusterReachabilityChecker,
    ReachabilityResult,
)
from cpjoin.usecases.config_parser import ConfigParser
from cpjoin.usecases.credential_ledger import CredentialLedger
from cpjoin.usecases.endpoint_bind_coordinator import (
    BindApplyResult,
    EndpointBindCoordinator,
)
from cpjoin.usecases.join_orchestrator import JoinOrchestrator
from cpjoin.usecases.membership_tracker import (
    MembershipTracker,
    ProgressResult,
    PromotionResult,
    RejectionReason,
)
from cpjoin.usecases.post_join_inspector import PostJoinInspector, PostJoinReport
from cpjoin.usecases.vip_arbiter import VipArbiter

__all__ = [
    "BindApplyResult",
    "BoundedPoller",
    "ClusterReachabilityChecker",
    "ConfigParser",
    "CredentialLedger",
    "EndpointBindCoordinator",
    "JoinOrchestrator",
    "MembershipTracker",
    "PollOutcome",
    "PostJoinInspector",
    "PostJoinReport",
    "ProgressResult",
    "PromotionResult",
    "ReachabilityResult",
    "RejectionReason",
    "VipArbiter",
]

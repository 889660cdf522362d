"""Domain layer: Entities with zero external dependencies."""

from cpjoin.domain.credentials import (
    CredentialKind,
    CredentialValidation,
    CredentialWindow,
)
from cpjoin.domain.events import JoinEvent, JoinStage, VipEvent, VipEventType
from cpjoin.domain.exceptions import CPJoinConfigError, CPJoinError
from cpjoin.domain.membership import (
    MemberRecord,
    Node,
    NodeRole,
    ReplicationProgress,
)
from cpjoin.domain.report import FailureKind, JoinFailure, JoinReport
from cpjoin.domain.retry import PollSpec, RetryPolicy
from cpjoin.domain.settings import JoinSettings
from cpjoin.domain.vip import BindDecision, VipLease

__all__ = [
    "BindDecision",
    "CPJoinConfigError",
    "CPJoinError",
    "CredentialKind",
    "CredentialValidation",
    "CredentialWindow",
    "FailureKind",
    "JoinEvent",
    "JoinFailure",
    "JoinReport",
    "JoinSettings",
    "JoinStage",
    "MemberRecord",
    "Node",
    "NodeRole",
    "PollSpec",
    "ReplicationProgress",
    "RetryPolicy",
    "VipEvent",
    "VipEventType",
    "VipLease",
]

"""Fake adapters for testing.

This module provides test doubles for port interfaces, enabling
deterministic testing without real I/O operations.
"""

from cpjoin.adapters.fakes.fake_api_server_bind import FakeApiServerBind
from cpjoin.adapters.fakes.fake_clock import FakeClock
from cpjoin.adapters.fakes.fake_cluster_control import FakeClusterControl
from cpjoin.adapters.fakes.fake_command_runner import FakeCommandRunner
from cpjoin.adapters.fakes.fake_consensus_store import FakeConsensusStore
from cpjoin.adapters.fakes.fake_credential_issuer import FakeCredentialIssuer
from cpjoin.adapters.fakes.fake_event_emitter import FakeEventEmitter
from cpjoin.adapters.fakes.fake_failover_state import FakeFailoverState
from cpjoin.adapters.fakes.fake_load_balancer import FakeLoadBalancer
from cpjoin.adapters.fakes.fake_logging import FakeLoggingAdapter
from cpjoin.adapters.fakes.fake_metrics import FakeMetricsAdapter, MetricCall

__all__ = [
    "FakeApiServerBind",
    "FakeClock",
    "FakeClusterControl",
    "FakeCommandRunner",
    "FakeConsensusStore",
    "FakeCredentialIssuer",
    "FakeEventEmitter",
    "FakeFailoverState",
    "FakeLoadBalancer",
    "FakeLoggingAdapter",
    "FakeMetricsAdapter",
    "MetricCall",
]

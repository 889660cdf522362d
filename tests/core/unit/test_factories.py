"""Unit tests for factory functions."""

import base64
import hashlib
import uuid
from unittest.mock import patch

import pytest

from cpjoin.adapters.fakes import FakeCommandRunner, FakeLoggingAdapter
from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.domain.events import JoinStage
from cpjoin.domain.settings import JoinSettings, VipSettings
from cpjoin.factories import (
    PrometheusNotInstalledError,
    create_credential_ledger,
    create_join_orchestrator,
    create_metrics_adapter,
    create_post_join_inspector,
    create_vip_watcher,
)
from cpjoin.usecases.join_orchestrator import JoinOrchestrator
from cpjoin.usecases.post_join_inspector import PostJoinInspector
from cpjoin.usecases.vip_arbiter import VipArbiter

from .builders import make_window

DER_PUBLIC_KEY = b"\x30\x59\x30\x13" + bytes(range(87))


def make_settings() -> JoinSettings:
    """Helper to create valid join settings for tests."""
    return JoinSettings(
        node_name="k8s-cp2",
        node_address="10.255.254.11",
        vip=VipSettings(address="10.255.254.100"),
    )


@pytest.mark.tier(1)
@pytest.mark.tra("Contract.Factory.Metrics")
class TestCreateMetricsAdapter:
    """Tests for create_metrics_adapter factory function."""

    def test_disabled_returns_no_op(self) -> None:
        assert isinstance(create_metrics_adapter(enabled=False), NoOpMetricsAdapter)

    def test_enabled_returns_prometheus_adapter(self) -> None:
        pytest.importorskip("prometheus_client")
        from cpjoin.adapters.prometheus_metrics import PrometheusMetricsAdapter

        adapter = create_metrics_adapter(
            enabled=True, prefix=f"test_{uuid.uuid4().hex[:8]}"
        )

        assert isinstance(adapter, PrometheusMetricsAdapter)
        assert isinstance(adapter, MetricsPort)

    def test_enabled_without_prometheus_raises(self) -> None:
        with patch.dict("sys.modules", {"prometheus_client": None}):
            with pytest.raises(PrometheusNotInstalledError, match="cpjoin\\[metrics\\]"):
                create_metrics_adapter(enabled=True)

    def test_not_installed_error_is_import_error(self) -> None:
        assert issubclass(PrometheusNotInstalledError, ImportError)


@pytest.mark.tier(1)
@pytest.mark.tra("Contract.Factory.CredentialLedger")
class TestCreateCredentialLedger:
    """Tests for create_credential_ledger factory function."""

    def test_issues_through_kubeadm_and_openssl(self) -> None:
        runner = FakeCommandRunner()
        body = base64.b64encode(DER_PUBLIC_KEY).decode()
        runner.respond(
            ["openssl", "x509"],
            stdout=f"-----BEGIN PUBLIC KEY-----\n{body}\n-----END PUBLIC KEY-----\n",
        )
        log = FakeLoggingAdapter()

        window = create_credential_ledger(make_settings(), runner, log).issue()

        assert [call[:3] for call in runner.calls] == [
            ["kubeadm", "token", "create"],
            ["kubeadm", "init", "phase"],
            ["openssl", "x509", "-pubkey"],
        ]
        assert runner.calls[0][3] == window.token
        assert window.cert_key in runner.calls[1]
        assert window.ca_cert_hash == (
            "sha256:" + hashlib.sha256(DER_PUBLIC_KEY).hexdigest()
        )
        assert window.token_expires_at - window.issued_at == 24 * 3600
        assert log.messages("info")


@pytest.mark.tier(1)
@pytest.mark.tra("Contract.Factory.JoinOrchestrator")
class TestCreateJoinOrchestrator:
    """Tests for create_join_orchestrator factory function."""

    def test_creates_idle_orchestrator_for_configured_node(self) -> None:
        orchestrator = create_join_orchestrator(
            make_settings(), make_window(), runner=FakeCommandRunner()
        )

        assert isinstance(orchestrator, JoinOrchestrator)
        assert orchestrator.state is JoinStage.IDLE
        assert orchestrator.node.name == "k8s-cp2"
        assert orchestrator.node.address == "10.255.254.11"
        assert orchestrator.member_id is None

    def test_construction_runs_no_commands(self) -> None:
        runner = FakeCommandRunner()

        create_join_orchestrator(make_settings(), make_window(), runner=runner)

        assert runner.calls == []


@pytest.mark.tier(1)
@pytest.mark.tra("Contract.Factory.PostJoinInspector")
class TestCreatePostJoinInspector:
    """Tests for create_post_join_inspector factory function."""

    def test_creates_inspector(self) -> None:
        runner = FakeCommandRunner()

        inspector = create_post_join_inspector(make_settings(), runner=runner)

        assert isinstance(inspector, PostJoinInspector)
        assert runner.calls == []


@pytest.mark.tier(1)
@pytest.mark.tra("Contract.Factory.VipWatcher")
class TestCreateVipWatcher:
    """Tests for create_vip_watcher factory function."""

    def test_creates_arbiter_for_configured_vip(self) -> None:
        runner = FakeCommandRunner()

        watcher = create_vip_watcher(make_settings(), runner=runner)

        assert isinstance(watcher, VipArbiter)
        assert watcher.vip_address == "10.255.254.100"
        assert runner.calls == []

    def test_samples_through_ip_addr(self) -> None:
        runner = FakeCommandRunner()
        runner.respond(
            ["ip", "-o", "addr", "show"],
            stdout="2: eth0    inet 10.255.254.100/32 scope global eth0\n",
        )
        watcher = create_vip_watcher(make_settings(), runner=runner)

        assert watcher.is_locally_owned()
        assert runner.calls[0][:2] == ["ip", "-o"]

    def test_stopped_watch_runs_no_commands(self) -> None:
        runner = FakeCommandRunner()
        watcher = create_vip_watcher(make_settings(), runner=runner)

        watcher.watch(lambda: True)

        assert runner.calls == []

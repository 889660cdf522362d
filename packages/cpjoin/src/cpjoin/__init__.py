"""cpjoin: control-plane join coordination for stacked etcd clusters behind a VIP."""

__version__ = "0.1.0"

from cpjoin.domain.settings import JoinSettings
from cpjoin.domain.exceptions import CPJoinConfigError, CPJoinError
from cpjoin.domain.report import FailureKind, JoinReport
from cpjoin.usecases.config_parser import ConfigParser
from cpjoin.usecases.join_orchestrator import JoinOrchestrator

__all__ = [
    "JoinSettings",
    "CPJoinConfigError",
    "CPJoinError",
    "FailureKind",
    "JoinReport",
    "ConfigParser",
    "JoinOrchestrator",
]

"""Shared fixtures for cpjoin core unit tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from cpjoin.adapters.fakes import FakeClock
from cpjoin.domain.credentials import CredentialWindow

from .builders import HOUR, ISSUED_AT, make_window


@pytest.fixture
def window() -> CredentialWindow:
    """Fresh window: token valid 24h, cert key valid 2h."""
    return make_window()


@pytest.fixture
def window_factory() -> Callable[..., CredentialWindow]:
    return make_window


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock one hour after the default window was issued."""
    return FakeClock(start=ISSUED_AT + HOUR)

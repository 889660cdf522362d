"""Shared steps for BDD tests."""

from __future__ import annotations

from typing import Any

from pytest_bdd import given, parsers

from cpjoin.domain.credentials import CredentialWindow

from ..core.unit.builders import HOUR, make_window


@given(
    parsers.parse(
        "a credential window issued with a {token_hours:d} hour token "
        "and a {key_hours:d} hour certificate key"
    ),
    target_fixture="issued_window",
)
def given_issued_window(
    context: dict[str, Any], token_hours: int, key_hours: int
) -> CredentialWindow:
    """Issue a window and store it in the scenario context.

    Each step module provides its own ``context`` fixture.
    """
    window = make_window(token_ttl=token_hours * HOUR, cert_key_ttl=key_hours * HOUR)
    context["window"] = window
    return window

"""
Root conftest.py for the cpjoin test suite.

Checks that every test declares the responsibility it protects (TRA marker)
and how slow it may be (tier marker), and turns the tier into a timeout.

Usage:
    @pytest.mark.tier(1)
    @pytest.mark.tra("UseCase.MembershipTracker.Promote")
    def test_something():
        ...

Configuration:
    TRA_ENFORCE=warn|1|0     report, fail, or skip TRA checks (default warn)
    TIER_ENFORCE=warn|1|0    report, fail, or skip tier checks (default warn)
    TIER_TIMEOUT_MULTIPLIER  scale tier timeouts, e.g. on slow CI runners
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


VALID_TRA_PREFIXES = frozenset(
    [
        "Domain.Invariant.",
        "Domain.Policy.",
        "UseCase.",
        "Port.",
        "Adapter.",
        "Contract.",
    ]
)

# Seconds per tier; 0 means no limit.
TIER_TIMEOUTS: dict[int, float] = {
    0: 0.1,
    1: 2.0,
    2: 30.0,
    3: 300.0,
    4: 0,
}


def pytest_configure(config: Config) -> None:
    config.addinivalue_line(
        "markers",
        "tra(anchor): responsibility anchor, one of "
        + ", ".join(sorted(p.rstrip(".") for p in VALID_TRA_PREFIXES)),
    )
    config.addinivalue_line(
        "markers",
        "tier(level): 0=instant, 1=fast, 2=standard, 3=slow, 4=manual; sets the timeout",
    )


def _get_tier(item: Item) -> int | None:
    for marker in item.iter_markers(name="tier"):
        if marker.args and isinstance(marker.args[0], int) and 0 <= marker.args[0] <= 4:
            return marker.args[0]
    return None


def _tra_errors(items: list[Item]) -> list[str]:
    if os.environ.get("TRA_ENFORCE", "warn") == "0":
        return []

    errors = []
    for item in items:
        markers = list(item.iter_markers(name="tra"))
        if not markers:
            errors.append(f"{item.nodeid}: missing @pytest.mark.tra('...')")
        elif len(markers) > 1:
            errors.append(f"{item.nodeid}: more than one @tra marker")
        else:
            anchor = markers[0].args[0] if markers[0].args else None
            if not isinstance(anchor, str) or not any(
                anchor.startswith(prefix) for prefix in VALID_TRA_PREFIXES
            ):
                errors.append(f"{item.nodeid}: invalid TRA anchor {anchor!r}")
    return errors


def _tier_errors(items: list[Item]) -> list[str]:
    if os.environ.get("TIER_ENFORCE", "warn") == "0":
        return []

    errors = []
    for item in items:
        markers = list(item.iter_markers(name="tier"))
        if not markers:
            errors.append(f"{item.nodeid}: missing @pytest.mark.tier()")
        elif len(markers) > 1 or _get_tier(item) is None:
            errors.append(f"{item.nodeid}: invalid tier marker")
    return errors


def _apply_tier_timeouts(items: list[Item]) -> None:
    """Add a timeout marker per tier when pytest-timeout is installed."""
    try:
        import pytest_timeout as _  # type: ignore[import-untyped]  # noqa: F401
    except ImportError:
        return

    multiplier = float(os.environ.get("TIER_TIMEOUT_MULTIPLIER", "1.0"))
    for item in items:
        tier = _get_tier(item)
        if tier is None or any(item.iter_markers(name="timeout")):
            continue
        timeout = TIER_TIMEOUTS[tier]
        if timeout > 0:
            item.add_marker(pytest.mark.timeout(timeout * multiplier))


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    errors = _tra_errors(items) + _tier_errors(items)
    if errors:
        strict = (
            os.environ.get("TRA_ENFORCE", "warn") == "1"
            and os.environ.get("TIER_ENFORCE", "warn") == "1"
        )
        if strict:
            pytest.fail(
                "TRA/Tier enforcement errors:\n" + "\n".join(f"  - {e}" for e in errors),
                pytrace=False,
            )
        print("\nTRA/Tier enforcement warnings:")
        for error in errors[:20]:
            print(f"  {error}")

    _apply_tier_timeouts(items)


@pytest.hookimpl(trylast=True)
def pytest_report_header(config: Config) -> str:
    tra_enforce = os.environ.get("TRA_ENFORCE", "warn")
    tier_enforce = os.environ.get("TIER_ENFORCE", "warn")
    return f"TRA enforcement: {tra_enforce} | Tier enforcement: {tier_enforce}"

"""Fake logging adapter for testing."""

from __future__ import annotations

import threading


class FakeLoggingAdapter:
    """Fake implementation of LoggingPort that records messages.

    Example:
        >>> log = FakeLoggingAdapter()
        >>> log.warning("promotion rejected")
        >>> log.messages("warning")
        ['promotion rejected']
    """

    def __init__(self) -> None:
        self._records: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    @property
    def records(self) -> list[tuple[str, str]]:
        """Return (level, message) tuples in call order."""
        with self._lock:
            return list(self._records)

    def messages(self, level: str | None = None) -> list[str]:
        return [msg for lvl, msg in self.records if level is None or lvl == level]

    def _record(self, level: str, message: str) -> None:
        with self._lock:
            self._records.append((level, message))

    def debug(self, message: str) -> None:
        self._record("debug", message)

    def info(self, message: str) -> None:
        self._record("info", message)

    def warning(self, message: str) -> None:
        self._record("warning", message)

    def error(self, message: str) -> None:
        self._record("error", message)

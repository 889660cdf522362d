"""Fake event emitter for testing."""

from __future__ import annotations

import threading

from cpjoin.domain.events import JoinEvent, JoinStage, VipEvent


class FakeEventEmitter:
    """Fake implementation of EventEmitterPort that records events."""

    def __init__(self) -> None:
        self._events: list[JoinEvent | VipEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[JoinEvent | VipEvent]:
        with self._lock:
            return list(self._events)

    @property
    def join_events(self) -> list[JoinEvent]:
        return [event for event in self.events if isinstance(event, JoinEvent)]

    @property
    def vip_events(self) -> list[VipEvent]:
        return [event for event in self.events if isinstance(event, VipEvent)]

    def stages_entered(self) -> list[JoinStage]:
        """Return the to_stage of every join event, in order."""
        return [event.to_stage for event in self.join_events]

    def emit(self, event: JoinEvent | VipEvent) -> None:
        with self._lock:
            self._events.append(event)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

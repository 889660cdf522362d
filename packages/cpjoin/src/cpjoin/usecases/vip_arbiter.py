"""VipArbiter use case for observing floating IP ownership.

The arbiter never decides who owns the VIP; the failover daemon does. It
only samples local address state and debounces it, so a reading has to
persist for a few seconds before downstream consumers react.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from cpjoin.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter
from cpjoin.adapters.ports import (
    EventEmitterPort,
    FailoverStatePort,
    LoggingPort,
    RealTimeProvider,
    TimeProvider,
)
from cpjoin.domain.events import VipEvent, VipEventType
from cpjoin.domain.exceptions import CPJoinError
from cpjoin.domain.retry import PollSpec
from cpjoin.domain.vip import VipLease
from cpjoin.usecases.bounded_poller import BoundedPoller

OwnershipListener = Callable[[bool], None]


class VipArbiter:
    """Debounced observer of local VIP ownership.

    The first successful reading is taken as the settled state. After
    that a differing raw reading must persist for ``debounce_seconds``
    before the settled state flips and listeners are notified. A reading
    that flips back within the window is discarded.

    At most one node should report ownership at steady state. That is
    enforced by the failover daemon, not here; consumers tolerate brief
    zero- or multi-owner windows by re-checking.

    Thread safety:
        observe() may be called from several threads; state changes are
        guarded by a lock and listeners run outside it.
    """

    WATCH_WINDOW = 3600.0

    def __init__(
        self,
        failover_state: FailoverStatePort,
        vip_address: str,
        node_name: str,
        debounce_seconds: float = 3.0,
        time_provider: TimeProvider | None = None,
        poller: BoundedPoller | None = None,
        poll_interval: float = 1.0,
        event_emitter: EventEmitterPort | None = None,
        metrics: MetricsPort | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize the arbiter.

        Args:
            failover_state: Port reading local address assignment.
            vip_address: The floating address to watch.
            node_name: This node's name, reported as owner when held.
            debounce_seconds: How long a changed reading must persist.
            time_provider: Clock for debounce timing.
            poller: Bounded poll primitive used by settle().
            poll_interval: Seconds between samples while settling.
            event_emitter: Receives VipEvent on settled changes.
            metrics: Receives the settled ownership gauge.
            logger: Optional logging port.
        """
        self._failover_state = failover_state
        self._vip_address = vip_address
        self._node_name = node_name
        self._debounce_seconds = debounce_seconds
        self._time_provider = time_provider or RealTimeProvider()
        self._poller = poller or BoundedPoller(time_provider=self._time_provider)
        self._poll_interval = poll_interval
        self._event_emitter = event_emitter
        self._metrics = metrics or NoOpMetricsAdapter()
        self._logger = logger

        self._settled: bool | None = None
        self._pending: bool | None = None
        self._pending_since = 0.0
        self._observed_at = 0.0
        self._listeners: list[OwnershipListener] = []
        self._lock = threading.Lock()

    @property
    def vip_address(self) -> str:
        return self._vip_address

    @property
    def is_settled(self) -> bool:
        """True if a settled reading exists and no change is pending."""
        with self._lock:
            return self._settled is not None and self._pending is None

    def subscribe(self, listener: OwnershipListener) -> None:
        """Register a callback invoked with the new settled ownership."""
        with self._lock:
            self._listeners.append(listener)

    def observe(self) -> VipLease:
        """Take one sample and return the settled lease.

        A failed read is logged and leaves the settled state untouched.
        """
        now = self._time_provider.get_time_seconds()
        try:
            raw = self._failover_state.holds_address(self._vip_address)
        except CPJoinError as e:
            if self._logger is not None:
                self._logger.warning(f"reading VIP {self._vip_address} failed: {e}")
            return self._lease()

        changed_to: bool | None = None
        with self._lock:
            self._observed_at = now
            if self._settled is None:
                self._settled = raw
                self._metrics.set_vip_owned(raw)
            elif raw == self._settled:
                self._pending = None
            else:
                if self._pending != raw:
                    self._pending = raw
                    self._pending_since = now
                if now - self._pending_since >= self._debounce_seconds:
                    self._settled = raw
                    self._pending = None
                    changed_to = raw
            listeners = list(self._listeners)

        if changed_to is not None:
            self._announce(changed_to, listeners)
        return self._lease()

    def _lease(self) -> VipLease:
        with self._lock:
            owner = self._node_name if self._settled else None
            return VipLease(
                address=self._vip_address, owner=owner, observed_at=self._observed_at
            )

    def _announce(self, owned: bool, listeners: list[OwnershipListener]) -> None:
        self._metrics.set_vip_owned(owned)
        if self._logger is not None:
            verb = "acquired" if owned else "released"
            self._logger.info(f"VIP {self._vip_address} {verb} by {self._node_name}")

        if self._event_emitter is not None:
            event_type = VipEventType.ACQUIRED if owned else VipEventType.RELEASED
            self._event_emitter.emit(
                VipEvent(event_type, self._vip_address, self._node_name)
            )

        for listener in listeners:
            try:
                listener(owned)
            except Exception as e:
                if self._logger is not None:
                    self._logger.error(f"VIP ownership listener failed: {e}")

    def current_owner(self) -> str | None:
        """Sample and return the settled owner as seen from this node."""
        return self.observe().owner

    def is_locally_owned(self) -> bool:
        """Sample and report whether this node holds the VIP (settled)."""
        return self.observe().is_held_by(self._node_name)

    def settle(
        self,
        timeout: float = 30.0,
        should_stop: Callable[[], bool] | None = None,
    ) -> VipLease:
        """Sample until no change is pending, or the ceiling passes.

        Returns the settled lease either way; a lease still unsettled at
        the ceiling is logged.
        """
        interval = min(self._poll_interval, timeout) if timeout > 0 else self._poll_interval
        spec = PollSpec(interval=interval, ceiling=max(timeout, interval))

        def stable() -> bool:
            self.observe()
            return self.is_settled

        outcome = self._poller.poll(stable, spec, should_stop)
        if outcome.timed_out and self._logger is not None:
            self._logger.warning(
                f"VIP {self._vip_address} ownership did not settle within {timeout:.0f}s"
            )
        return self._lease()

    def watch(
        self,
        should_stop: Callable[[], bool],
        duration: float | None = None,
    ) -> VipLease:
        """Keep sampling so settled changes reach listeners after the join.

        Samples every poll interval until should_stop() returns True, or
        for ``duration`` seconds when given. Each stretch of sampling is a
        bounded poll of at most ``WATCH_WINDOW`` seconds.

        Returns:
            The settled lease when watching stops.
        """
        remaining = duration

        def never_done() -> bool:
            self.observe()
            return False

        while not should_stop():
            window = self.WATCH_WINDOW
            if remaining is not None:
                window = min(remaining, window)
            if window < self._poll_interval:
                break
            outcome = self._poller.poll(
                never_done, PollSpec(interval=self._poll_interval, ceiling=window), should_stop
            )
            if remaining is not None:
                remaining -= outcome.elapsed
        return self._lease()

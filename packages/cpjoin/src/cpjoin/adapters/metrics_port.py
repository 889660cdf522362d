"""Port interface and no-op implementation for metrics collection.

Metrics ports follow fire-and-forget semantics: implementations may
buffer, sample, or drop metrics as needed. No exceptions should propagate.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsPort(Protocol):
    """Port interface for metrics collection.

    Contract:
        - All methods are fire-and-forget (no return value, no exceptions)
        - set_* methods update gauges to specific values
        - Implementations may no-op if metrics are disabled
    """

    def set_join_stage(self, stage: str) -> None:
        """Set the current join stage.

        Args:
            stage: JoinStage value of the stage just entered.
        """
        ...

    def set_join_failed(self, failed: bool) -> None:
        """Set the join failure gauge (1 failed, 0 otherwise)."""
        ...

    def set_vip_owned(self, owned: bool) -> None:
        """Set the settled VIP ownership gauge (1 owned, 0 otherwise)."""
        ...

    def set_load_balancer_bound(self, bound: bool) -> None:
        """Set the load balancer bind gauge (1 bound, 0 unbound)."""
        ...

    def set_promotion_attempts(self, attempts: int) -> None:
        """Set the number of promote calls made in the current attempt."""
        ...


class NoOpMetricsAdapter:
    """No-operation metrics adapter for when metrics are disabled.

    All methods are no-ops. This allows use cases to unconditionally
    call metrics methods without checking if metrics are enabled.
    """

    def set_join_stage(self, stage: str) -> None:
        """No-op."""
        pass

    def set_join_failed(self, failed: bool) -> None:
        """No-op."""
        pass

    def set_vip_owned(self, owned: bool) -> None:
        """No-op."""
        pass

    def set_load_balancer_bound(self, bound: bool) -> None:
        """No-op."""
        pass

    def set_promotion_attempts(self, attempts: int) -> None:
        """No-op."""
        pass

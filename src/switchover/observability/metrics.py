"""
OpenTelemetry metrics for routing operations.

Tracks executions per backend, fallback attempts, registry switches and
execution latency. Instruments come from the OpenTelemetry API; without a
configured SDK MeterProvider they record nothing, while the in-process
snapshot is always kept.

Example:
    >>> from switchover.observability.metrics import RoutingMetrics
    >>>
    >>> metrics = RoutingMetrics()
    >>> metrics.record_execution("getTeams", "rest", 12.5, success=True)
    >>> metrics.record_fallback("getTeams", "rest", "legacy")
    >>> metrics.snapshot().executions
    1

Metrics Exposed:
    - switchover.router.executions (Counter): Executions by backend and outcome
    - switchover.router.fallbacks (Counter): Fallback attempts
    - switchover.router.duration (Histogram): Execution latency in ms
    - switchover.registry.switches (Counter): Recorded backend switches
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics

# Module-level meter instance
_meter: Any = None


def _get_meter() -> Any:
    """Get or create the meter for the switchover namespace."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter("switchover", version="1.0.0")
    return _meter


def reset_meter() -> None:
    """
    Reset the global meter instance.

    Useful for testing to ensure fresh meter state between tests.
    """
    global _meter
    _meter = None


@dataclass(frozen=True)
class RoutingMetricSnapshot:
    """
    Snapshot of the metric values recorded so far.

    Attributes:
        executions: Total executions (primary and fallback attempts)
        failures: Executions that raised
        fallbacks: Fallback attempts
        switches: Registry switches recorded
        executions_by_backend: Executions per backend name
    """

    executions: int = 0
    failures: int = 0
    fallbacks: int = 0
    switches: int = 0
    executions_by_backend: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "executions": self.executions,
            "failures": self.failures,
            "fallbacks": self.fallbacks,
            "switches": self.switches,
            "executions_by_backend": dict(self.executions_by_backend),
        }


@dataclass
class RoutingMetrics:
    """
    Container for routing metric instruments.

    Attributes:
        enable_metrics: Whether OpenTelemetry instruments are created
    """

    enable_metrics: bool = True

    _executions_counter: Any = field(default=None, init=False, repr=False)
    _fallbacks_counter: Any = field(default=None, init=False, repr=False)
    _switches_counter: Any = field(default=None, init=False, repr=False)
    _duration_histogram: Any = field(default=None, init=False, repr=False)

    # Internal counters for snapshot
    _executions: int = field(default=0, init=False, repr=False)
    _failures: int = field(default=0, init=False, repr=False)
    _fallbacks: int = field(default=0, init=False, repr=False)
    _switches: int = field(default=0, init=False, repr=False)
    _by_backend: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.enable_metrics:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        """Set up OpenTelemetry metric instruments."""
        meter = _get_meter()

        self._executions_counter = meter.create_counter(
            name="switchover.router.executions",
            unit="calls",
            description="Operation executions by backend and outcome",
        )
        self._fallbacks_counter = meter.create_counter(
            name="switchover.router.fallbacks",
            unit="calls",
            description="Fallback attempts after a primary backend failure",
        )
        self._switches_counter = meter.create_counter(
            name="switchover.registry.switches",
            unit="switches",
            description="Backend switches recorded by the switch registry",
        )
        self._duration_histogram = meter.create_histogram(
            name="switchover.router.duration",
            unit="ms",
            description="Operation execution latency in milliseconds",
        )

    def record_execution(
        self,
        operation: str,
        backend: str,
        duration_ms: float,
        success: bool = True,
    ) -> None:
        """
        Record one execution attempt.

        Args:
            operation: Logical operation name
            backend: Backend that served the attempt
            duration_ms: Wall-clock duration in milliseconds
            success: Whether the attempt succeeded
        """
        attrs = {
            "operation": operation,
            "backend": backend,
            "success": str(success).lower(),
        }
        if self._executions_counter is not None:
            self._executions_counter.add(1, attrs)
            self._duration_histogram.record(duration_ms, attrs)

        self._executions += 1
        if not success:
            self._failures += 1
        self._by_backend[backend] = self._by_backend.get(backend, 0) + 1

    def record_fallback(self, operation: str, primary: str, fallback: str) -> None:
        """Record a fallback attempt from primary to fallback backend."""
        if self._fallbacks_counter is not None:
            self._fallbacks_counter.add(
                1,
                {"operation": operation, "primary": primary, "fallback": fallback},
            )
        self._fallbacks += 1

    def record_switch(self, operation: str, from_backend: str, to_backend: str) -> None:
        """Record a registry switch."""
        if self._switches_counter is not None:
            self._switches_counter.add(
                1,
                {"operation": operation, "from": from_backend, "to": to_backend},
            )
        self._switches += 1

    def snapshot(self) -> RoutingMetricSnapshot:
        """Return the values recorded so far."""
        return RoutingMetricSnapshot(
            executions=self._executions,
            failures=self._failures,
            fallbacks=self._fallbacks,
            switches=self._switches,
            executions_by_backend=dict(self._by_backend),
        )

    def reset(self) -> None:
        """Reset the snapshot counters (instruments are left untouched)."""
        self._executions = 0
        self._failures = 0
        self._fallbacks = 0
        self._switches = 0
        self._by_backend.clear()


__all__ = [
    "RoutingMetrics",
    "RoutingMetricSnapshot",
    "reset_meter",
]

"""
PerformanceComparator - controlled latency trials against both backends.

The comparator switches an operation to REST, runs it a fixed number of
times, switches it to legacy and repeats, then restores whatever
assignment the operation had before. Calls run through the router with
the matching force flag and fallback disabled, so each timing belongs to
exactly one backend. Failed calls are counted, never timed.
"""

from __future__ import annotations

import logging
import math
import statistics
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from switchover.observability import (
    ATTR_ITERATIONS,
    ATTR_OPERATION,
    Tracer,
    create_tracer,
)
from switchover.routing.models import BackendTarget
from switchover.routing.router import MigrationRouter

logger = logging.getLogger(__name__)

# experiment_id carried by the switch records a comparison writes
COMPARISON_EXPERIMENT_ID = "comparison"


@dataclass(frozen=True)
class LatencyStats:
    """
    Latency statistics over successful calls, in milliseconds.

    Attributes:
        count: Successful calls
        errors: Failed calls
        avg: Mean latency
        min: Fastest call
        max: Slowest call
        p95: 95th percentile (nearest rank)
    """

    count: int = 0
    errors: int = 0
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p95: float = 0.0

    @classmethod
    def from_samples(cls, samples: Sequence[float | None]) -> LatencyStats:
        """
        Build statistics from raw samples; None marks a failed call.
        """
        timings = sorted(s for s in samples if s is not None)
        errors = sum(1 for s in samples if s is None)
        if not timings:
            return cls(errors=errors)
        rank = max(math.ceil(0.95 * len(timings)), 1)
        return cls(
            count=len(timings),
            errors=errors,
            avg=statistics.fmean(timings),
            min=timings[0],
            max=timings[-1],
            p95=timings[rank - 1],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "errors": self.errors,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "p95": self.p95,
        }


@dataclass(frozen=True)
class ComparisonReport:
    """
    Result of comparing both backends for one operation.

    Attributes:
        operation: Operation compared
        iterations: Calls per backend
        rest: REST statistics
        legacy: Legacy statistics
        recommendation: Backend with the lower average latency, None when
            neither backend produced a successful call
        improvement: Percentage by which the recommended backend is faster
            than the other one
    """

    operation: str
    iterations: int
    rest: LatencyStats
    legacy: LatencyStats
    recommendation: BackendTarget | None
    improvement: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "iterations": self.iterations,
            "rest": self.rest.to_dict(),
            "legacy": self.legacy.to_dict(),
            "recommendation": self.recommendation.value if self.recommendation else None,
            "improvement": f"{self.improvement:.1f}%",
        }


def recommend(rest: LatencyStats, legacy: LatencyStats) -> tuple[BackendTarget | None, float]:
    """
    Recommend the faster backend.

    A backend without successful calls is never recommended over one with
    successful calls. Ties go to the legacy backend.

    Returns:
        Tuple of (recommended backend or None, improvement percentage)
    """
    if rest.count == 0 and legacy.count == 0:
        return None, 0.0
    if legacy.count == 0:
        return BackendTarget.REST, 0.0
    if rest.count == 0:
        return BackendTarget.LEGACY, 0.0

    if rest.avg < legacy.avg:
        return BackendTarget.REST, (legacy.avg - rest.avg) / legacy.avg * 100
    if legacy.avg == rest.avg:
        return BackendTarget.LEGACY, 0.0
    return BackendTarget.LEGACY, (rest.avg - legacy.avg) / rest.avg * 100


class PerformanceComparator:
    """
    Measures both backends for one operation under controlled repetition.

    Example:
        >>> comparator = PerformanceComparator(router)
        >>> report = await comparator.compare("getTeams", iterations=20)
        >>> report.recommendation, report.improvement
        (<BackendTarget.REST: 'rest'>, 37.5)
    """

    def __init__(
        self,
        router: MigrationRouter,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._router = router

    async def _run(
        self,
        operation: str,
        target: BackendTarget,
        payload: Any,
        iterations: int,
    ) -> list[float | None]:
        registry = self._router.registry
        registry.switch_to(operation, target, experiment_id=COMPARISON_EXPERIMENT_ID)

        samples: list[float | None] = []
        for _ in range(iterations):
            start = time.perf_counter()
            try:
                await self._router.execute(
                    operation,
                    payload,
                    force_rest=target == BackendTarget.REST,
                    force_legacy=target == BackendTarget.LEGACY,
                    fallback=False,
                )
            except Exception as e:
                logger.debug("%s failed on %s during comparison: %s", operation, target.value, e)
                samples.append(None)
            else:
                samples.append((time.perf_counter() - start) * 1000)
        return samples

    async def compare(
        self,
        operation: str,
        test_payload: Any = None,
        iterations: int = 10,
    ) -> ComparisonReport:
        """
        Compare REST and legacy latency for an operation.

        The temporary switches are recorded in the registry history with
        experiment_id ``"comparison"``. They are the latest records for the
        operation, so a rollback issued right after a comparison undoes the
        comparison's last switch rather than the last operator switch.

        Args:
            operation: Operation key
            test_payload: Payload sent on every call
            iterations: Calls per backend

        Returns:
            ComparisonReport

        Raises:
            ValueError: If iterations is not positive
        """
        if iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {iterations}")

        registry = self._router.registry
        original = registry.get_status(operation)
        logger.info("Comparing performance for %s (%d iterations)", operation, iterations)

        with self._tracer.span(
            "switchover.comparator.compare",
            {ATTR_OPERATION: operation, ATTR_ITERATIONS: iterations},
        ):
            try:
                rest_samples = await self._run(operation, BackendTarget.REST, test_payload, iterations)
                legacy_samples = await self._run(
                    operation, BackendTarget.LEGACY, test_payload, iterations
                )
            finally:
                registry.switch_to(
                    operation, original, experiment_id=COMPARISON_EXPERIMENT_ID
                )

        rest = LatencyStats.from_samples(rest_samples)
        legacy = LatencyStats.from_samples(legacy_samples)
        recommendation, improvement = recommend(rest, legacy)

        report = ComparisonReport(
            operation=operation,
            iterations=iterations,
            rest=rest,
            legacy=legacy,
            recommendation=recommendation,
            improvement=improvement,
        )
        logger.info(
            "Performance comparison for %s complete: recommend %s (%.1f%%)",
            operation,
            recommendation.value if recommendation else "none",
            improvement,
        )
        return report


__all__ = [
    "COMPARISON_EXPERIMENT_ID",
    "PerformanceComparator",
    "ComparisonReport",
    "LatencyStats",
    "recommend",
]

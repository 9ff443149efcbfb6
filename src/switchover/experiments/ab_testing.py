"""
ABTestController - time-boxed comparison of the two backends.

Starting an experiment assigns the operation to one arm immediately (a
weighted draw at the configured REST traffic split, recorded in the
registry with the experiment id). While the experiment is active, the
router draws the arm per call and reports latency and outcome back here.
Ending the experiment computes a verdict from the final per-arm metrics
and removes it from the active set; the registry keeps whatever
assignment the experiment left.

Scoring:
    score(arm) = (1 - error_rate) / max(avg_latency_ms, 1)
    An arm without requests scores 0. The higher score wins; a tie keeps
    the legacy backend. Confidence is the score gap normalized by the
    larger score.

Example:
    >>> controller = ABTestController(registry)
    >>> experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=0.2))
    >>> controller.record_metric(experiment_id, "rest", "latency", 42.0)
    >>> controller.record_metric(experiment_id, "rest", "success")
    >>> verdict = controller.end(experiment_id)
    >>> verdict.winner
    <BackendTarget.REST: 'rest'>
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from switchover.config import ExperimentConfig
from switchover.observability import ATTR_EXPERIMENT_ID, ATTR_OPERATION, Tracer, create_tracer
from switchover.routing.models import BackendTarget
from switchover.routing.registry import SwitchRegistry

logger = logging.getLogger(__name__)

ARMS: tuple[BackendTarget, BackendTarget] = (BackendTarget.LEGACY, BackendTarget.REST)
METRIC_KINDS = frozenset({"latency", "error", "success"})

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ArmStats:
    """Raw counters for one arm; they only ever increase."""

    requests: int = 0
    errors: int = 0
    total_latency: float = 0.0


@dataclass
class Experiment:
    """
    An active A/B experiment.

    Attributes:
        id: Experiment id
        operation: Operation under test
        start_time: When the experiment started
        end_time: When the experiment expires
        traffic_split: Probability that a draw selects REST
        metrics: Metric kinds collected
        initial_arm: Arm assigned when the experiment started
        arms: Counters per arm
    """

    id: str
    operation: str
    start_time: datetime
    end_time: datetime
    traffic_split: float
    metrics: tuple[str, ...]
    initial_arm: BackendTarget
    arms: dict[BackendTarget, ArmStats] = field(
        default_factory=lambda: {arm: ArmStats() for arm in ARMS}
    )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.end_time


@dataclass(frozen=True)
class ArmResult:
    """Derived statistics for one arm."""

    requests: int
    errors: int
    avg_latency: float
    error_rate: float

    @classmethod
    def from_stats(cls, stats: ArmStats) -> ArmResult:
        if stats.requests == 0:
            return cls(requests=0, errors=stats.errors, avg_latency=0.0, error_rate=0.0)
        return cls(
            requests=stats.requests,
            errors=stats.errors,
            avg_latency=stats.total_latency / stats.requests,
            error_rate=stats.errors / stats.requests,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "errors": self.errors,
            "avg_latency": self.avg_latency,
            "error_rate": self.error_rate,
        }


@dataclass(frozen=True)
class ExperimentResults:
    """Snapshot of an experiment's per-arm statistics."""

    experiment_id: str
    operation: str
    duration_seconds: float
    legacy: ArmResult
    rest: ArmResult

    def arm(self, target: BackendTarget) -> ArmResult:
        return self.rest if target == BackendTarget.REST else self.legacy

    def to_dict(self) -> dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
            "legacy": self.legacy.to_dict(),
            "rest": self.rest.to_dict(),
        }


@dataclass(frozen=True)
class ExperimentVerdict:
    """Outcome of an ended experiment."""

    experiment_id: str
    winner: BackendTarget
    confidence: float
    results: ExperimentResults

    @property
    def recommendation(self) -> str:
        if self.winner == BackendTarget.REST:
            return "Migrate to REST API"
        return "Keep on legacy backend"

    def to_dict(self) -> dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "winner": self.winner.value,
            "confidence": self.confidence,
            "recommendation": self.recommendation,
            "results": self.results.to_dict(),
        }


def arm_score(result: ArmResult) -> float:
    """Score one arm; higher is better, an arm without requests scores 0."""
    if result.requests == 0:
        return 0.0
    return (1 - result.error_rate) / max(result.avg_latency, 1.0)


def compute_verdict(results: ExperimentResults) -> tuple[BackendTarget, float]:
    """
    Pick the winning arm from final metrics.

    Pure function of its input: the same results always give the same
    winner and confidence.

    Returns:
        Tuple of (winner, confidence in [0, 1])
    """
    rest_score = arm_score(results.rest)
    legacy_score = arm_score(results.legacy)
    winner = BackendTarget.REST if rest_score > legacy_score else BackendTarget.LEGACY
    best = max(rest_score, legacy_score)
    confidence = abs(rest_score - legacy_score) / best if best > 0 else 0.0
    return winner, confidence


class ABTestController:
    """
    Runs A/B experiments between the legacy and REST backends.

    Args:
        registry: Registry receiving the initial arm assignment
        rng: Random source for arm draws (seed it for reproducible tests)
        clock: Callable returning the current UTC time
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        registry: SwitchRegistry,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._registry = registry
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._experiments: dict[str, Experiment] = {}

    def _draw(self, traffic_split: float) -> BackendTarget:
        return BackendTarget.REST if self._rng.random() < traffic_split else BackendTarget.LEGACY

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, operation: str, config: ExperimentConfig | None = None) -> str:
        """
        Start an experiment and assign the operation to its first arm.

        Args:
            operation: Operation under test
            config: Experiment configuration

        Returns:
            The experiment id

        Raises:
            ValueError: If the operation already has an active experiment
        """
        config = config or ExperimentConfig()
        if self.active_experiment_for(operation) is not None:
            raise ValueError(
                f"Operation {operation} already has an active experiment. "
                "End it before starting another one."
            )

        now = self._clock()
        arm = self._draw(config.traffic_split)
        experiment = Experiment(
            id=str(uuid4()),
            operation=operation,
            start_time=now,
            end_time=now + timedelta(seconds=config.duration_seconds),
            traffic_split=config.traffic_split,
            metrics=config.metrics,
            initial_arm=arm,
        )

        with self._tracer.span(
            "switchover.experiment.start",
            {ATTR_OPERATION: operation, ATTR_EXPERIMENT_ID: experiment.id},
        ):
            self._experiments[experiment.id] = experiment
            self._registry.switch_to(operation, arm, experiment_id=experiment.id)

        logger.info(
            "Started A/B test %s for %s (split %.2f, initial arm %s)",
            experiment.id,
            operation,
            config.traffic_split,
            arm.value,
        )
        return experiment.id

    def end(self, experiment_id: str) -> ExperimentVerdict | None:
        """
        End an experiment and return its verdict.

        The registry is not touched; acting on the verdict is up to the
        caller.

        Returns:
            The verdict, or None for an unknown (or already ended) id
        """
        results = self.results(experiment_id)
        if results is None:
            return None

        winner, confidence = compute_verdict(results)
        del self._experiments[experiment_id]

        logger.info(
            "A/B test %s completed. Winner: %s (confidence: %.1f%%)",
            experiment_id,
            winner.value,
            confidence * 100,
        )
        return ExperimentVerdict(
            experiment_id=experiment_id,
            winner=winner,
            confidence=confidence,
            results=results,
        )

    def end_expired(self) -> list[ExperimentVerdict]:
        """End every experiment whose duration has elapsed."""
        now = self._clock()
        expired = [e.id for e in self._experiments.values() if e.is_expired(now)]
        verdicts = []
        for experiment_id in expired:
            verdict = self.end(experiment_id)
            if verdict is not None:
                verdicts.append(verdict)
        return verdicts

    # =========================================================================
    # Metrics
    # =========================================================================

    def record_metric(
        self,
        experiment_id: str,
        arm: BackendTarget | str,
        kind: str,
        value: float = 1.0,
    ) -> None:
        """
        Record one observation for an arm.

        ``success`` counts a request, ``error`` counts a failed request and
        ``latency`` adds ``value`` milliseconds to the arm's total latency.
        Unknown experiment ids are ignored, as are kinds the experiment
        was not configured to collect.

        Raises:
            ValueError: For an unknown kind or an arm outside the experiment
        """
        if kind not in METRIC_KINDS:
            raise ValueError(f"Unknown metric kind {kind!r}, expected one of {sorted(METRIC_KINDS)}")
        arm = BackendTarget(arm)
        if arm not in ARMS:
            raise ValueError(f"{arm.value} is not an experiment arm")

        experiment = self._experiments.get(experiment_id)
        if experiment is None or kind not in experiment.metrics:
            return

        stats = experiment.arms[arm]
        if kind == "latency":
            stats.total_latency += max(value, 0.0)
        elif kind == "error":
            stats.requests += 1
            stats.errors += 1
        else:
            stats.requests += 1

    def results(self, experiment_id: str) -> ExperimentResults | None:
        """Current per-arm statistics, None for an unknown id."""
        experiment = self._experiments.get(experiment_id)
        if experiment is None:
            return None
        return ExperimentResults(
            experiment_id=experiment.id,
            operation=experiment.operation,
            duration_seconds=(self._clock() - experiment.start_time).total_seconds(),
            legacy=ArmResult.from_stats(experiment.arms[BackendTarget.LEGACY]),
            rest=ArmResult.from_stats(experiment.arms[BackendTarget.REST]),
        )

    # =========================================================================
    # Live traffic
    # =========================================================================

    def active_experiments(self) -> list[Experiment]:
        return list(self._experiments.values())

    def active_experiment_for(self, operation: str) -> Experiment | None:
        for experiment in self._experiments.values():
            if experiment.operation == operation:
                return experiment
        return None

    def select_arm(self, operation: str) -> tuple[str, BackendTarget] | None:
        """
        Draw the arm for one live call.

        Returns:
            Tuple of (experiment id, arm), or None when the operation has
            no unexpired experiment
        """
        experiment = self.active_experiment_for(operation)
        if experiment is None or experiment.is_expired(self._clock()):
            return None
        return experiment.id, self._draw(experiment.traffic_split)


__all__ = [
    "ABTestController",
    "ArmStats",
    "ArmResult",
    "Experiment",
    "ExperimentResults",
    "ExperimentVerdict",
    "arm_score",
    "compute_verdict",
]

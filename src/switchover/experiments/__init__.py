"""
Backend comparison tools: A/B experiments, latency trials and response
validation.
"""

from switchover.experiments.ab_testing import (
    ABTestController,
    ArmResult,
    ArmStats,
    Experiment,
    ExperimentResults,
    ExperimentVerdict,
    arm_score,
    compute_verdict,
)
from switchover.experiments.comparator import (
    ComparisonReport,
    LatencyStats,
    PerformanceComparator,
    recommend,
)
from switchover.experiments.validation import (
    DEFAULT_TOLERANCE,
    MigrationValidator,
    ValidationReport,
    similarity,
)

__all__ = [
    # A/B testing
    "ABTestController",
    "ArmStats",
    "ArmResult",
    "Experiment",
    "ExperimentResults",
    "ExperimentVerdict",
    "arm_score",
    "compute_verdict",
    # Comparator
    "PerformanceComparator",
    "ComparisonReport",
    "LatencyStats",
    "recommend",
    # Validation
    "MigrationValidator",
    "ValidationReport",
    "similarity",
    "DEFAULT_TOLERANCE",
]

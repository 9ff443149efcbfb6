"""
Migration plan generation.

Analyzed artifacts are sorted by priority and inverted risk, then bucketed
into three phases by priority:

    phase1 "Low Risk, High Impact"       priority high
    phase2 "Medium Risk, Medium Impact"  priority medium
    phase3 "High Risk, Low Impact"       priority low

Insights and global recommendations are derived from the plan summary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

from switchover.planner.analyzer import ComponentAnalysis, MigrationPatternAnalyzer
from switchover.planner.patterns import Level

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = frozenset({".js", ".jsx", ".ts", ".tsx", ".py"})

PHASE_NAMES: dict[Level, tuple[str, str]] = {
    Level.HIGH: ("phase1", "Low Risk, High Impact"),
    Level.MEDIUM: ("phase2", "Medium Risk, Medium Impact"),
    Level.LOW: ("phase3", "High Risk, Low Impact"),
}


@dataclass(frozen=True)
class Phase:
    """One rollout phase and its components."""

    key: str
    name: str
    components: tuple[ComponentAnalysis, ...] = ()

    @property
    def effort(self) -> int:
        return sum(c.effort for c in self.components)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "effort": self.effort,
            "components": [c.path for c in self.components],
        }


@dataclass(frozen=True)
class PlanSummary:
    total: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0
    high_risk: int = 0
    low_confidence: int = 0
    total_effort: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_components": self.total,
            "high_priority": self.high_priority,
            "medium_priority": self.medium_priority,
            "low_priority": self.low_priority,
            "high_risk": self.high_risk,
            "low_confidence": self.low_confidence,
            "total_effort": self.total_effort,
        }


@dataclass(frozen=True)
class MigrationPlan:
    """
    Ordered migration plan.

    Attributes:
        components: All analyses, highest priority and lowest risk first
        phases: phase1, phase2 and phase3, in order
        summary: Aggregate counts
    """

    components: tuple[ComponentAnalysis, ...]
    phases: tuple[Phase, ...]
    summary: PlanSummary

    def phase(self, key: str) -> Phase:
        for phase in self.phases:
            if phase.key == key:
                return phase
        raise KeyError(key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "phases": {phase.key: phase.to_dict() for phase in self.phases},
            "components": [c.to_dict() for c in self.components],
        }


@dataclass(frozen=True)
class Insight:
    kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "message": self.message}


@dataclass(frozen=True)
class Recommendation:
    priority: Level
    action: str
    details: str

    def to_dict(self) -> dict[str, str]:
        return {"priority": self.priority.value, "action": self.action, "details": self.details}


@dataclass(frozen=True)
class PlanReport:
    """Plan plus the insights and recommendations derived from it."""

    plan: MigrationPlan
    insights: tuple[Insight, ...] = field(default_factory=tuple)
    recommendations: tuple[Recommendation, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "insights": [i.to_dict() for i in self.insights],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


def build_plan(analyses: Iterable[ComponentAnalysis]) -> MigrationPlan:
    """Sort analyses and bucket them into phases."""
    ordered = tuple(sorted(analyses, key=lambda a: a.sort_key, reverse=True))

    buckets: dict[Level, list[ComponentAnalysis]] = {level: [] for level in PHASE_NAMES}
    for analysis in ordered:
        buckets[analysis.priority].append(analysis)

    phases = tuple(
        Phase(key=key, name=name, components=tuple(buckets[level]))
        for level, (key, name) in PHASE_NAMES.items()
    )

    summary = PlanSummary(
        total=len(ordered),
        high_priority=len(buckets[Level.HIGH]),
        medium_priority=len(buckets[Level.MEDIUM]),
        low_priority=len(buckets[Level.LOW]),
        high_risk=sum(1 for a in ordered if a.risk_level == Level.HIGH),
        low_confidence=sum(1 for a in ordered if not a.confident),
        total_effort=sum(a.effort for a in ordered),
    )
    return MigrationPlan(components=ordered, phases=phases, summary=summary)


def generate_insights(plan: MigrationPlan) -> list[Insight]:
    summary = plan.summary
    if summary.total == 0:
        return []

    insights = []
    if summary.high_priority > summary.total * 0.3:
        insights.append(
            Insight(
                "warning",
                "High number of high-priority components suggests aggressive migration strategy needed",
            )
        )
    if summary.high_risk > summary.total * 0.2:
        insights.append(
            Insight("warning", "Significant number of high-risk components - consider phased approach")
        )

    avg_effort = summary.total_effort / summary.total
    if avg_effort > 8:
        insights.append(
            Insight("info", f"Average migration effort is {avg_effort:.1f} hours per component")
        )

    phase1_ratio = len(plan.phase("phase1").components) / summary.total
    if phase1_ratio > 0.5:
        insights.append(
            Insight("success", f"{phase1_ratio * 100:.0f}% of components are low-risk and high-impact")
        )

    if summary.low_confidence:
        insights.append(
            Insight("warning", f"{summary.low_confidence} components could not be analyzed")
        )
    return insights


def global_recommendations(plan: MigrationPlan) -> list[Recommendation]:
    summary = plan.summary
    recommendations = []
    if summary.high_priority > 0:
        recommendations.append(
            Recommendation(
                Level.HIGH,
                "Start with high-priority components",
                f"Migrate {summary.high_priority} high-priority components first for maximum impact",
            )
        )
    if summary.total_effort > 100:
        recommendations.append(
            Recommendation(
                Level.MEDIUM,
                "Consider team allocation",
                f"Total migration effort estimated at {summary.total_effort} hours - "
                "plan team resources accordingly",
            )
        )
    phase1 = plan.phase("phase1")
    if phase1.components:
        recommendations.append(
            Recommendation(
                Level.HIGH,
                "Execute Phase 1 immediately",
                f"{len(phase1.components)} low-risk components can be migrated quickly",
            )
        )
    recommendations.append(
        Recommendation(
            Level.MEDIUM,
            "Set up monitoring",
            "Compare backends with PerformanceComparator and run A/B tests during migration",
        )
    )
    return recommendations


def is_source_artifact(path: str) -> bool:
    return PurePath(path).suffix in SOURCE_SUFFIXES


def analyze_codebase(
    files: Iterable[tuple[str, Any]],
    analyzer: MigrationPatternAnalyzer | None = None,
) -> PlanReport:
    """
    Analyze source artifacts and build the full report.

    Args:
        files: (path, source) pairs; non-source paths are skipped
        analyzer: Analyzer to use (a default one if None)

    Returns:
        PlanReport
    """
    analyzer = analyzer or MigrationPatternAnalyzer()
    sources = [(path, source) for path, source in files if is_source_artifact(path)]
    logger.info("Analyzing %d files for migration patterns", len(sources))

    plan = build_plan(analyzer.analyze(path, source) for path, source in sources)
    return PlanReport(
        plan=plan,
        insights=tuple(generate_insights(plan)),
        recommendations=tuple(global_recommendations(plan)),
    )


__all__ = [
    "Phase",
    "PlanSummary",
    "MigrationPlan",
    "Insight",
    "Recommendation",
    "PlanReport",
    "PHASE_NAMES",
    "SOURCE_SUFFIXES",
    "build_plan",
    "generate_insights",
    "global_recommendations",
    "is_source_artifact",
    "analyze_codebase",
]

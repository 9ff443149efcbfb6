"""
Static migration planner.

Scores source artifacts for migration readiness from surface-level
patterns (no code is executed) and buckets them into rollout phases.

Example:
    >>> from switchover.planner import analyze_codebase
    >>>
    >>> report = analyze_codebase([("src/pages/Teams.jsx", source)])
    >>> [phase.name for phase in report.plan.phases]
    ['Low Risk, High Impact', 'Medium Risk, Medium Impact', 'High Risk, Low Impact']
"""

from switchover.planner.analyzer import (
    ComponentAnalysis,
    MigrationPatternAnalyzer,
    effort_estimate,
    migration_score,
    priority_for,
    recommendations_for,
    risk_level,
)
from switchover.planner.patterns import (
    DEFAULT_LEGACY_MARKER,
    Complexity,
    Dependencies,
    Level,
    PatternCounts,
    detect_patterns,
)
from switchover.planner.plan import (
    Insight,
    MigrationPlan,
    Phase,
    PlanReport,
    PlanSummary,
    Recommendation,
    analyze_codebase,
    build_plan,
    generate_insights,
    global_recommendations,
)

__all__ = [
    # Patterns
    "Level",
    "Complexity",
    "Dependencies",
    "PatternCounts",
    "DEFAULT_LEGACY_MARKER",
    "detect_patterns",
    # Analysis
    "ComponentAnalysis",
    "MigrationPatternAnalyzer",
    "migration_score",
    "risk_level",
    "effort_estimate",
    "priority_for",
    "recommendations_for",
    # Plan
    "Phase",
    "PlanSummary",
    "MigrationPlan",
    "Insight",
    "Recommendation",
    "PlanReport",
    "build_plan",
    "generate_insights",
    "global_recommendations",
    "analyze_codebase",
]

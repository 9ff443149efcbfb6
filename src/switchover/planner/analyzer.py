"""
Per-artifact migration scoring.

Turns the PatternCounts of one source artifact into a ComponentAnalysis:
a migration score, a risk level, an effort estimate and a priority.

Scoring:
    score  = 30 if any legacy reference, + 5 per legacy reference
           + min(2 * api calls, 20)
           + 3 per distinct entity
           + 10 when modern data-fetching hooks are used
           - 15 (high complexity) or 5 (medium complexity)
           + 15 when the legacy SDK is imported explicitly
           - 10 when a REST/API client is already imported
           clamped to [0, 100]

    risk   = complexity level; high when update calls > 5 or delete
             calls > 3; one step higher with more than 5 external imports

    effort = complexity multiplier (1/2/3) + 0.1 per api call
             + 0.5 per entity + 0.2 per import, rounded, at least 1

    priority = high when score > 70 and risk is low; low when score < 30
               or risk is high; medium otherwise
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from switchover.planner.patterns import (
    DEFAULT_LEGACY_MARKER,
    DOMAIN_ENTITIES,
    Level,
    PatternCounts,
    detect_patterns,
)

logger = logging.getLogger(__name__)


def migration_score(patterns: PatternCounts) -> int:
    score = 0
    if patterns.legacy_references > 0:
        score += 30
    score += patterns.legacy_references * 5
    score += min(patterns.total_api_calls * 2, 20)
    score += len(patterns.entities) * 3
    if patterns.uses_modern_hooks:
        score += 10

    level = patterns.complexity.level
    if level == Level.HIGH:
        score -= 15
    elif level == Level.MEDIUM:
        score -= 5

    if patterns.dependencies.has_legacy_dependency:
        score += 15
    if patterns.dependencies.has_rest_dependency:
        score -= 10
    return max(0, min(100, score))


def risk_level(patterns: PatternCounts) -> Level:
    risk = patterns.complexity.level
    if patterns.api_calls.get("update", 0) > 5 or patterns.api_calls.get("delete", 0) > 3:
        risk = Level.HIGH
    if patterns.dependencies.external > 5:
        risk = Level.MEDIUM if risk == Level.LOW else Level.HIGH
    return risk


def effort_estimate(patterns: PatternCounts) -> int:
    effort = float(patterns.complexity.level.rank)
    effort += patterns.total_api_calls * 0.1
    effort += len(patterns.entities) * 0.5
    effort += patterns.dependencies.total * 0.2
    return max(1, round(effort))


def priority_for(score: int, risk: Level) -> Level:
    if score > 70 and risk == Level.LOW:
        return Level.HIGH
    if score < 30 or risk == Level.HIGH:
        return Level.LOW
    return Level.MEDIUM


def recommendations_for(patterns: PatternCounts, legacy_marker: str = DEFAULT_LEGACY_MARKER) -> list[str]:
    """Concrete next steps for one artifact."""
    recommendations = []
    if patterns.legacy_references > 0:
        recommendations.append(f"Replace {legacy_marker} SDK calls with router-backed operations")
    if patterns.primary_entity:
        recommendations.append(
            f"Route {patterns.primary_entity} operations through MigrationRouter.execute()"
        )
    if patterns.api_calls.get("create", 0) > 0 or patterns.api_calls.get("update", 0) > 0:
        recommendations.append("Test write operations thoroughly after migration")
    if patterns.complexity.level == Level.HIGH:
        recommendations.append("Consider breaking down component before migration")
    if len(patterns.hooks) > 5:
        recommendations.append("Review and consolidate hook usage")
    return recommendations


@dataclass(frozen=True)
class ComponentAnalysis:
    """
    Migration readiness of one source artifact.

    Attributes:
        path: Artifact path
        patterns: Detected pattern counts
        migration_score: Readiness score (0-100)
        risk_level: Migration risk
        effort: Estimated effort in hours
        priority: Migration priority
        recommendations: Suggested next steps
        confident: False when the artifact could not be analyzed and was
            scored conservatively
    """

    path: str
    patterns: PatternCounts
    migration_score: int
    risk_level: Level
    effort: int
    priority: Level
    recommendations: tuple[str, ...] = ()
    confident: bool = True

    @property
    def sort_key(self) -> int:
        """Priority first, then inverted risk; higher migrates earlier."""
        return self.priority.rank * 10 + (4 - self.risk_level.rank)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "migration_score": self.migration_score,
            "risk_level": self.risk_level.value,
            "effort": self.effort,
            "priority": self.priority.value,
            "recommendations": list(self.recommendations),
            "confidence": "high" if self.confident else "low",
            "patterns": self.patterns.to_dict(),
        }


def _decode(source: Any) -> str | None:
    """Source text, or None when the artifact is not readable text."""
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(source, str) or "\x00" in source:
        return None
    return source


class MigrationPatternAnalyzer:
    """
    Analyzes source artifacts for migration readiness.

    Results are cached per path; call clear_cache() after the sources
    changed.

    Example:
        >>> analyzer = MigrationPatternAnalyzer()
        >>> analysis = analyzer.analyze("src/pages/Teams.jsx", source)
        >>> analysis.priority, analysis.risk_level
        (<Level.HIGH: 'high'>, <Level.LOW: 'low'>)
    """

    def __init__(
        self,
        *,
        legacy_marker: str = DEFAULT_LEGACY_MARKER,
        entities: tuple[str, ...] = DOMAIN_ENTITIES,
    ) -> None:
        if not legacy_marker:
            raise ValueError("legacy_marker must not be empty")
        self.legacy_marker = legacy_marker
        self.entities = entities
        self._cache: dict[str, ComponentAnalysis] = {}

    def analyze(self, path: str, source: Any) -> ComponentAnalysis:
        """
        Analyze one artifact. Never raises on malformed input.

        Args:
            path: Artifact path (cache key)
            source: Source text (str or UTF-8 bytes)

        Returns:
            ComponentAnalysis; unreadable artifacts get a low-confidence,
            low-priority analysis
        """
        cached = self._cache.get(path)
        if cached is not None:
            return cached

        code = _decode(source)
        if code is None:
            logger.warning("Could not read %s as source text, scoring it as low priority", path)
            analysis = self._unreadable(path)
        else:
            try:
                analysis = self._score(path, code)
            except Exception as e:
                logger.warning("Analysis of %s failed (%s), scoring it as low priority", path, e)
                analysis = self._unreadable(path)

        self._cache[path] = analysis
        return analysis

    def _score(self, path: str, code: str) -> ComponentAnalysis:
        patterns = detect_patterns(code, legacy_marker=self.legacy_marker, entities=self.entities)
        score = migration_score(patterns)
        risk = risk_level(patterns)
        return ComponentAnalysis(
            path=path,
            patterns=patterns,
            migration_score=score,
            risk_level=risk,
            effort=effort_estimate(patterns),
            priority=priority_for(score, risk),
            recommendations=tuple(recommendations_for(patterns, self.legacy_marker)),
        )

    @staticmethod
    def _unreadable(path: str) -> ComponentAnalysis:
        return ComponentAnalysis(
            path=path,
            patterns=PatternCounts(),
            migration_score=0,
            risk_level=Level.MEDIUM,
            effort=1,
            priority=Level.LOW,
            recommendations=("Review manually: artifact could not be read as source text",),
            confident=False,
        )

    def clear_cache(self) -> None:
        self._cache.clear()


__all__ = [
    "ComponentAnalysis",
    "MigrationPatternAnalyzer",
    "migration_score",
    "risk_level",
    "effort_estimate",
    "priority_for",
    "recommendations_for",
]

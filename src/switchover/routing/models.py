"""
Data models for backend routing.

This module defines:
- BackendTarget: Backend that serves an operation
- OperationNamespace: Entity or function namespace of an operation key
- SwitchRecord: Immutable history entry for one backend switch
- SwitchOutcome / BatchSwitchResult: Results of batch switches
- FallbackEvent: Notification emitted when a fallback attempt fails
- DEFAULT_ENTITY_TARGETS / DEFAULT_FUNCTION_TARGETS: Seed assignment table
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class BackendTarget(str, Enum):
    """
    Backend serving an operation.

    Values:
        LEGACY: Embedded legacy SDK
        REST: REST API backend
        SECONDARY: Reserved for a third backend, gated by a feature flag
    """

    LEGACY = "legacy"
    REST = "rest"
    SECONDARY = "secondary"

    @property
    def alternate(self) -> BackendTarget:
        """Backend used for the single fallback attempt."""
        if self == BackendTarget.REST:
            return BackendTarget.LEGACY
        if self == BackendTarget.LEGACY:
            return BackendTarget.REST
        return BackendTarget.LEGACY


class OperationNamespace(str, Enum):
    """Namespace of an operation key; the two namespaces are disjoint."""

    ENTITY = "entity"
    FUNCTION = "function"


@dataclass(frozen=True)
class SwitchRecord:
    """
    One backend switch for an operation.

    The ``from_target`` of a record always equals the operation's
    assignment immediately before the record was written.

    Attributes:
        operation: Operation key
        from_target: Assignment before the switch
        to_target: Assignment after the switch
        timestamp: When the switch was applied (UTC)
        experiment_id: Experiment that caused the switch, if any
    """

    operation: str
    from_target: BackendTarget
    to_target: BackendTarget
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    experiment_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "operation": self.operation,
            "from": self.from_target.value,
            "to": self.to_target.value,
            "timestamp": self.timestamp.isoformat(),
            "experiment_id": self.experiment_id,
        }


@dataclass(frozen=True)
class SwitchOutcome:
    """
    Per-operation result of a batch switch.

    Attributes:
        operation: Operation key
        success: Whether the switch was applied
        previous: Assignment before the switch (None on failure)
        error: The exception raised, when the switch failed
    """

    operation: str
    success: bool
    previous: BackendTarget | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class BatchSwitchResult:
    """
    Result of switching several operations at once.

    A single failed operation never aborts the batch.
    """

    target: BackendTarget
    outcomes: tuple[SwitchOutcome, ...] = ()

    @property
    def succeeded(self) -> list[str]:
        return [o.operation for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[str]:
        return [o.operation for o in self.outcomes if not o.success]

    @property
    def all_succeeded(self) -> bool:
        return all(o.success for o in self.outcomes)


@dataclass(frozen=True)
class FallbackEvent:
    """
    Emitted by the router when the fallback attempt also failed.

    Attributes:
        operation: Operation key
        primary: Backend of the first attempt
        fallback: Backend of the fallback attempt
        primary_error: Error raised by the first attempt
        fallback_error: Error raised by the fallback attempt (the one raised)
    """

    operation: str
    primary: BackendTarget
    fallback: BackendTarget
    primary_error: BaseException
    fallback_error: BaseException


# Seed assignments for a deployment part-way through its migration.
DEFAULT_ENTITY_TARGETS: dict[str, BackendTarget] = {
    name: BackendTarget.REST
    for name in (
        "PilarAssessment",
        "UserProfile",
        "Team",
        "AssessmentSession",
        "UserProgress",
        "StudyGroup",
        "PeerFeedback",
        "Challenge",
        "Trophy",
        "Badge",
        "MasteryLevel",
        "Analytics",
        "Content",
        "LearningPathway",
        "ChatMessage",
        "DevelopmentPlan",
        "DataEnrichment",
        "TimeSeriesData",
        "GoalMapping",
        "ForcePromptCard",
        "UserSession",
    )
}

DEFAULT_FUNCTION_TARGETS: dict[str, BackendTarget] = {
    **{
        name: BackendTarget.REST
        for name in (
            "generateAICoaching",
            "pilarRagQuery",
            "getAssessmentGuidance",
            "generateQuizQuestions",
            "analyzeContent",
            "createAssessment",
            "getUserProfile",
            "updateUserProgress",
            "joinStudyGroup",
            "submitPeerFeedback",
            "completeChallenge",
            "earnTrophy",
            "awardBadge",
            "trackAnalytics",
            "manageContent",
            "getLearningPath",
            "sendChatMessage",
            "updateDevelopmentPlan",
            "enrichData",
            "recordTimeSeries",
            "mapGoals",
            "getForcePrompts",
            "trackUserSession",
        )
    },
    "createTeam": BackendTarget.LEGACY,
}


def default_targets() -> dict[str, BackendTarget]:
    """Return a fresh copy of the combined seed table."""
    return {**DEFAULT_ENTITY_TARGETS, **DEFAULT_FUNCTION_TARGETS}


def namespace_of(operation: str) -> OperationNamespace | None:
    """Return the namespace of a seeded operation, None if it is unknown."""
    if operation in DEFAULT_ENTITY_TARGETS:
        return OperationNamespace.ENTITY
    if operation in DEFAULT_FUNCTION_TARGETS:
        return OperationNamespace.FUNCTION
    return None


__all__ = [
    "BackendTarget",
    "OperationNamespace",
    "SwitchRecord",
    "SwitchOutcome",
    "BatchSwitchResult",
    "FallbackEvent",
    "DEFAULT_ENTITY_TARGETS",
    "DEFAULT_FUNCTION_TARGETS",
    "default_targets",
    "namespace_of",
]

"""
Static operation lookup tables.

REST_ENDPOINTS maps an operation to its REST path and HTTP method;
LEGACY_METHODS maps an operation to the legacy SDK method name. Both are
plain dictionaries keyed by operation name. An operation with no entry
falls back to a derived default.

Paths may contain ``{name}`` placeholders which are filled from the
payload (see resolve_endpoint()).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class Endpoint:
    """REST path template and HTTP method for one operation."""

    path: str
    method: str = "POST"


REST_ENDPOINTS: dict[str, Endpoint] = {
    # AI operations
    "generateAICoaching": Endpoint("/ai/coaching", "POST"),
    "pilarRagQuery": Endpoint("/rag/query", "POST"),
    "getAssessmentGuidance": Endpoint("/ai/guidance", "POST"),
    "generateQuizQuestions": Endpoint("/ai/quiz-questions", "POST"),
    "analyzeContent": Endpoint("/ai/analyze-content", "POST"),
    # Assessments
    "createAssessment": Endpoint("/assessments", "POST"),
    "getAssessment": Endpoint("/assessments/{id}", "GET"),
    "updateAssessment": Endpoint("/assessments/{id}", "PUT"),
    "deleteAssessment": Endpoint("/assessments/{id}", "DELETE"),
    # Users
    "getUserProfile": Endpoint("/users/profile", "GET"),
    "updateUserProfile": Endpoint("/users/profile", "PUT"),
    "getUserHistory": Endpoint("/users/history", "GET"),
    "getUserProgress": Endpoint("/users/progress", "GET"),
    # Content
    "getContent": Endpoint("/content", "GET"),
    "createContent": Endpoint("/content", "POST"),
    "updateContent": Endpoint("/content/{id}", "PUT"),
    "deleteContent": Endpoint("/content/{id}", "DELETE"),
    # Teams
    "getTeams": Endpoint("/teams", "GET"),
    "createTeam": Endpoint("/teams", "POST"),
    "getTeam": Endpoint("/teams/{id}", "GET"),
    "updateTeam": Endpoint("/teams/{id}", "PUT"),
    "deleteTeam": Endpoint("/teams/{id}", "DELETE"),
    # Analytics
    "getUserAnalytics": Endpoint("/analytics/user/{id}", "GET"),
    "getAssessmentAnalytics": Endpoint("/analytics/assessments", "GET"),
    "getTeamAnalytics": Endpoint("/analytics/teams", "GET"),
}

LEGACY_METHODS: dict[str, str] = {
    "generateAICoaching": "generateCoaching",
    "pilarRagQuery": "queryRAG",
    "getAssessmentGuidance": "getGuidance",
    "generateQuizQuestions": "generateQuestions",
    "analyzeContent": "analyzeContent",
    "createAssessment": "createAssessment",
    "getAssessment": "getAssessment",
    "updateAssessment": "updateAssessment",
    "deleteAssessment": "deleteAssessment",
    "getUserProfile": "getUserProfile",
    "updateUserProfile": "updateUserProfile",
    "getUserHistory": "getUserHistory",
    "getUserProgress": "getUserProgress",
    "getContent": "getContent",
    "createContent": "createContent",
    "updateContent": "updateContent",
    "deleteContent": "deleteContent",
    "getTeams": "getTeams",
    "createTeam": "createTeam",
    "getTeam": "getTeam",
    "updateTeam": "updateTeam",
    "deleteTeam": "deleteTeam",
    "getUserAnalytics": "getUserAnalytics",
    "getAssessmentAnalytics": "getAssessmentAnalytics",
    "getTeamAnalytics": "getTeamAnalytics",
}


@dataclass(frozen=True)
class ResolvedEndpoint:
    """
    A concrete request derived from an operation and its payload.

    Attributes:
        path: Path with placeholders filled in
        method: HTTP method
        params: Query parameters (GET/DELETE only)
        body: JSON body (other methods)
    """

    path: str
    method: str
    params: dict[str, Any] | None = None
    body: Any = None


def endpoint_for(operation: str, method: str | None = None) -> Endpoint:
    """
    Look up the endpoint for an operation.

    Unmapped operations use ``/{operation lower-cased}`` with the given
    method (POST when none is given).
    """
    endpoint = REST_ENDPOINTS.get(operation)
    if endpoint is not None:
        return endpoint
    return Endpoint(f"/{operation.lower()}", (method or "POST").upper())


def legacy_method_for(operation: str) -> str:
    """Look up the legacy SDK method name; unmapped operations map to themselves."""
    return LEGACY_METHODS.get(operation, operation)


def resolve_endpoint(operation: str, data: Any = None, method: str | None = None) -> ResolvedEndpoint:
    """
    Build the concrete request for an operation.

    Placeholders in the path are filled from ``data`` (which must then be
    a mapping) and removed from it. For GET and DELETE the remaining
    fields become query parameters; for other methods the remaining
    payload is sent as the body.

    Args:
        operation: Operation key
        data: Request payload
        method: HTTP method override for unmapped operations

    Returns:
        ResolvedEndpoint

    Raises:
        ValueError: If a placeholder has no value in the payload
    """
    endpoint = endpoint_for(operation, method)
    names = _PLACEHOLDER.findall(endpoint.path)

    remaining: Any = data
    path = endpoint.path
    if names:
        if not isinstance(data, dict):
            raise ValueError(
                f"Operation {operation} requires {names} in its payload, got {type(data).__name__}"
            )
        remaining = dict(data)
        for name in names:
            if name not in remaining:
                raise ValueError(f"Operation {operation} requires '{name}' in its payload")
            path = path.replace(f"{{{name}}}", str(remaining.pop(name)))

    if endpoint.method in ("GET", "DELETE"):
        params = remaining if isinstance(remaining, dict) and remaining else None
        return ResolvedEndpoint(path=path, method=endpoint.method, params=params)

    if names and not remaining:
        remaining = None
    return ResolvedEndpoint(path=path, method=endpoint.method, body=remaining)


__all__ = [
    "Endpoint",
    "ResolvedEndpoint",
    "REST_ENDPOINTS",
    "LEGACY_METHODS",
    "endpoint_for",
    "legacy_method_for",
    "resolve_endpoint",
]

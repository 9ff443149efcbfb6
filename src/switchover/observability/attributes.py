"""
Standard span and metric attributes for switchover.

Attribute constants shared by all components so that spans and metrics
carry consistent names. HTTP attributes follow OpenTelemetry semantic
conventions.

Example:
    >>> from switchover.observability.attributes import ATTR_OPERATION
    >>>
    >>> with tracer.span(
    ...     "switchover.router.execute",
    ...     {ATTR_OPERATION: "getTeams"},
    ... ):
    ...     pass
"""

# =============================================================================
# Routing Attributes
# =============================================================================

ATTR_OPERATION = "switchover.operation"
"""Logical operation name (entity or function)."""

ATTR_BACKEND = "switchover.backend"
"""Backend target serving the call ('legacy', 'rest', 'secondary')."""

ATTR_FALLBACK_BACKEND = "switchover.fallback.backend"
"""Backend used for the fallback attempt."""

ATTR_FALLBACK_ENABLED = "switchover.fallback.enabled"
"""Whether fallback was enabled for the call (bool)."""

ATTR_STREAMING = "switchover.streaming"
"""Whether the call consumed a streamed response (bool)."""

ATTR_FROM_BACKEND = "switchover.switch.from"
"""Backend before a registry switch."""

ATTR_TO_BACKEND = "switchover.switch.to"
"""Backend after a registry switch."""

ATTR_BATCH_SIZE = "switchover.batch.size"
"""Number of operations in a batch switch (integer)."""

# =============================================================================
# Experiment Attributes
# =============================================================================

ATTR_EXPERIMENT_ID = "switchover.experiment.id"
"""Identifier of an A/B experiment."""

ATTR_ITERATIONS = "switchover.comparison.iterations"
"""Iterations per backend in a performance comparison (integer)."""

# =============================================================================
# HTTP Attributes (OTEL semantic conventions)
# =============================================================================

ATTR_HTTP_METHOD = "http.request.method"
"""HTTP request method."""

ATTR_HTTP_URL = "url.full"
"""Absolute request URL."""

ATTR_HTTP_STATUS_CODE = "http.response.status_code"
"""HTTP response status code (integer)."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_CODE = "switchover.error.code"
"""Machine-readable error code of a failed call."""

ATTR_ERROR_TYPE = "error.type"
"""Exception class name of a failed call."""


__all__ = [
    "ATTR_OPERATION",
    "ATTR_BACKEND",
    "ATTR_FALLBACK_BACKEND",
    "ATTR_FALLBACK_ENABLED",
    "ATTR_STREAMING",
    "ATTR_FROM_BACKEND",
    "ATTR_TO_BACKEND",
    "ATTR_BATCH_SIZE",
    "ATTR_EXPERIMENT_ID",
    "ATTR_ITERATIONS",
    "ATTR_HTTP_METHOD",
    "ATTR_HTTP_URL",
    "ATTR_HTTP_STATUS_CODE",
    "ATTR_ERROR_CODE",
    "ATTR_ERROR_TYPE",
]

"""
Observability utilities for switchover.

Provides the tracer abstraction, routing metrics and the standard attribute
names used by every component.

Example:
    >>> from switchover.observability import create_tracer, MockTracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=False)
    >>> with tracer.span("switchover.example"):
    ...     pass
"""

from switchover.observability.attributes import (
    ATTR_BACKEND,
    ATTR_BATCH_SIZE,
    ATTR_ERROR_CODE,
    ATTR_ERROR_TYPE,
    ATTR_EXPERIMENT_ID,
    ATTR_FALLBACK_BACKEND,
    ATTR_FALLBACK_ENABLED,
    ATTR_FROM_BACKEND,
    ATTR_HTTP_METHOD,
    ATTR_HTTP_STATUS_CODE,
    ATTR_HTTP_URL,
    ATTR_ITERATIONS,
    ATTR_OPERATION,
    ATTR_STREAMING,
    ATTR_TO_BACKEND,
)
from switchover.observability.metrics import (
    RoutingMetrics,
    RoutingMetricSnapshot,
    reset_meter,
)
from switchover.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    SpanKindEnum,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "SpanKindEnum",
    "create_tracer",
    # Metrics
    "RoutingMetrics",
    "RoutingMetricSnapshot",
    "reset_meter",
    # Attributes
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

"""
Tracers handed to switchover components.

Routers, registries, experiments and the REST client take a ``Tracer`` in
their constructor and never import OpenTelemetry themselves. Passing
``enable_tracing=False`` gives them a ``NullTracer``; tests pass a
``MockTracer`` and assert on the spans it recorded.

Example:
    >>> from switchover.observability import create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("switchover.router.execute", {"switchover.operation": "getTeams"}):
    ...     ...
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from opentelemetry import trace
from opentelemetry.trace import Span
from opentelemetry.trace import SpanKind as OtelSpanKind


class SpanKindEnum(Enum):
    """INTERNAL for in-process work, CLIENT for calls to a backend."""

    INTERNAL = "internal"
    CLIENT = "client"


_KIND_MAPPING = {
    SpanKindEnum.INTERNAL: OtelSpanKind.INTERNAL,
    SpanKindEnum.CLIENT: OtelSpanKind.CLIENT,
}


@runtime_checkable
class Tracer(Protocol):
    """Opens spans named ``switchover.<component>.<action>``."""

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool: ...

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]: ...


class NullTracer:
    """Tracer used when tracing is switched off. Every span is None."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None


class OpenTelemetryTracer:
    """
    Tracer backed by ``opentelemetry.trace``.

    Spans only record once the application installs an SDK
    TracerProvider; with the bare API they are non-recording.

    Args:
        tracer_name: Instrumentation scope, usually the module's __name__
    """

    def __init__(self, tracer_name: str) -> None:
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(
            name,
            kind=_KIND_MAPPING.get(kind, OtelSpanKind.INTERNAL),
            attributes=attributes or {},
        )


class MockTracer:
    """
    Tracer for tests.

    ``spans`` holds ``(name, attributes)`` pairs in the order the spans
    were opened and ``kinds`` the matching span kinds.
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []
        self.kinds: list[SpanKindEnum] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        with self.span_with_kind(name, SpanKindEnum.INTERNAL, attributes):
            yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()
        self.kinds.clear()

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self.spans.append((name, attributes))
        self.kinds.append(kind)
        yield None


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Return an OpenTelemetryTracer, or a NullTracer when tracing is off.

    Components call it as ``tracer or create_tracer(__name__, enable_tracing)``.
    """
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "SpanKindEnum",
    "create_tracer",
]

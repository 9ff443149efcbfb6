"""
Shared pytest fixtures for the switchover tests.

This module provides:
- Registry and router fixtures (registry, harness, router)
- Fake backend fixtures (rest_adapter, legacy_adapter)
- Tracing fixtures (mock_tracer)
- OpenTelemetry metrics fixtures (metric_reader, reset_routing_meter)
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from switchover.observability import MockTracer, reset_meter
from switchover.observability import metrics as routing_metrics
from switchover.routing import BackendTarget, MigrationRouter, SwitchRegistry
from switchover.testing import FakeBackendAdapter, RoutingTestHarness

# ============================================================================
# OpenTelemetry Metrics Availability Check
# ============================================================================

OTEL_METRICS_AVAILABLE = False
try:
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import InMemoryMetricReader

    OTEL_METRICS_AVAILABLE = True
except ImportError:
    MeterProvider = None  # type: ignore[assignment, misc]
    InMemoryMetricReader = None  # type: ignore[assignment, misc]


# ============================================================================
# Routing Fixtures
# ============================================================================


@pytest.fixture
def registry() -> SwitchRegistry:
    """Empty registry defaulting to LEGACY, tracing disabled."""
    return SwitchRegistry(enable_tracing=False)


@pytest.fixture
def harness() -> Iterator[RoutingTestHarness]:
    """Router wired to fake REST and legacy backends."""
    h = RoutingTestHarness()
    yield h
    h.reset()


@pytest.fixture
def rest_adapter(harness: RoutingTestHarness) -> FakeBackendAdapter:
    return harness.rest


@pytest.fixture
def legacy_adapter(harness: RoutingTestHarness) -> FakeBackendAdapter:
    return harness.legacy


@pytest.fixture
def router(harness: RoutingTestHarness) -> MigrationRouter:
    return harness.router


@pytest.fixture
def rest_only_router() -> MigrationRouter:
    """Router with only a REST adapter registered."""
    return MigrationRouter(
        SwitchRegistry(default_target=BackendTarget.REST, enable_tracing=False),
        {BackendTarget.REST: FakeBackendAdapter(BackendTarget.REST)},
        enable_tracing=False,
    )


# ============================================================================
# Observability Fixtures
# ============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()


@pytest.fixture
def metric_reader(monkeypatch: pytest.MonkeyPatch) -> Iterator[Any]:
    """
    Provide an InMemoryMetricReader for testing metrics.

    The routing meter is taken from a private MeterProvider backed by the
    reader, so the global provider is never touched.

    Yields:
        InMemoryMetricReader: Reader for inspecting collected metrics.
    """
    if not OTEL_METRICS_AVAILABLE:
        pytest.skip("opentelemetry-sdk not installed")

    reader = InMemoryMetricReader()
    provider = MeterProvider(metric_readers=[reader])
    monkeypatch.setattr(routing_metrics, "_meter", provider.get_meter("switchover"))

    yield reader

    provider.shutdown()


@pytest.fixture
def reset_routing_meter() -> Iterator[None]:
    """Reset the cached routing meter before and after the test."""
    reset_meter()
    yield
    reset_meter()

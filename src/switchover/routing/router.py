"""
MigrationRouter - executes operations on the assigned backend.

The router resolves which backend serves an operation (force flags, then
an active A/B experiment, then the SwitchRegistry), executes through that
backend's adapter and, when the call fails, retries exactly once on the
alternate backend.

Responsibilities:
    - Resolve the target backend per call
    - Execute through the registered BackendAdapter
    - Fall back once, strictly after the primary attempt completed
    - Surface the fallback's error, chained from the primary error
    - Feed latency and outcome of experiment traffic back to the
      A/B controller

Fallback Behavior:
    - REST fails    -> one retry on LEGACY
    - LEGACY fails  -> one retry on REST
    - SECONDARY fails -> one retry on LEGACY
    - Streaming executions never fall back (a partially consumed stream
      cannot be replayed)

Usage:
    >>> from switchover.routing import MigrationRouter, SwitchRegistry
    >>>
    >>> router = MigrationRouter(registry, {
    ...     BackendTarget.REST: rest_adapter,
    ...     BackendTarget.LEGACY: legacy_adapter,
    ... })
    >>> profile = await router.execute("getUserProfile")
    >>> await router.execute("generateAICoaching", {"prompt": "hi"},
    ...                      streaming=True, on_chunk=print)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from switchover.config import ExecuteOptions
from switchover.exceptions import AdapterNotRegisteredError
from switchover.observability import (
    ATTR_BACKEND,
    ATTR_ERROR_TYPE,
    ATTR_EXPERIMENT_ID,
    ATTR_FALLBACK_BACKEND,
    ATTR_FALLBACK_ENABLED,
    ATTR_OPERATION,
    ATTR_STREAMING,
    RoutingMetrics,
    Tracer,
    create_tracer,
)
from switchover.routing.models import BackendTarget, FallbackEvent
from switchover.routing.registry import SwitchRegistry

if TYPE_CHECKING:
    import httpx

    from switchover.adapters.base import BackendAdapter, BackendResult, ChunkCallback
    from switchover.config import SwitchoverSettings
    from switchover.experiments.ab_testing import ABTestController
    from switchover.transport.auth import TokenManager

logger = logging.getLogger(__name__)

FallbackListener = Callable[[FallbackEvent], None]


class MigrationRouter:
    """
    Dual-backend router with single fallback.

    Example:
        >>> router = create_migration_router(settings, legacy_client=sdk)
        >>> teams = await router.execute("getTeams")
        >>> await router.execute("createTeam", {"name": "x"}, force_rest=True)
    """

    def __init__(
        self,
        registry: SwitchRegistry,
        adapters: Mapping[BackendTarget, BackendAdapter] | None = None,
        *,
        experiments: ABTestController | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        metrics: RoutingMetrics | None = None,
    ) -> None:
        """
        Initialize the router.

        Args:
            registry: Source of per-operation backend assignments
            adapters: Adapter per backend
            experiments: Optional A/B controller whose active experiments
                split live traffic
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing
            metrics: Optional RoutingMetrics instance
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._registry = registry
        self._adapters: dict[BackendTarget, BackendAdapter] = dict(adapters or {})
        self._experiments = experiments
        self._metrics = metrics or RoutingMetrics(enable_metrics=False)
        self._listeners: list[FallbackListener] = []

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def registry(self) -> SwitchRegistry:
        return self._registry

    @property
    def metrics(self) -> RoutingMetrics:
        return self._metrics

    @property
    def experiments(self) -> ABTestController | None:
        return self._experiments

    @experiments.setter
    def experiments(self, controller: ABTestController | None) -> None:
        self._experiments = controller

    def register_adapter(self, adapter: BackendAdapter) -> None:
        """Register (or replace) the adapter for its backend."""
        self._adapters[adapter.target] = adapter
        logger.debug("Registered adapter for %s", adapter.target.value)

    def get_adapter(self, target: BackendTarget) -> BackendAdapter:
        """
        Get the adapter for a backend.

        Raises:
            AdapterNotRegisteredError: If no adapter is registered
        """
        adapter = self._adapters.get(target)
        if adapter is None:
            raise AdapterNotRegisteredError(target)
        return adapter

    def add_listener(self, listener: FallbackListener) -> None:
        """Register a callback invoked when both attempts of a call failed."""
        self._listeners.append(listener)

    def remove_listener(self, listener: FallbackListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # =========================================================================
    # Execution
    # =========================================================================

    def resolve_target(
        self,
        operation: str,
        options: ExecuteOptions | None = None,
    ) -> tuple[BackendTarget, str | None]:
        """
        Decide which backend serves a call.

        Returns:
            Tuple of (backend, experiment id or None)
        """
        options = options or ExecuteOptions()
        if options.force_rest:
            return BackendTarget.REST, None
        if options.force_legacy:
            return BackendTarget.LEGACY, None
        if self._experiments is not None:
            selection = self._experiments.select_arm(operation)
            if selection is not None:
                experiment_id, arm = selection
                return arm, experiment_id
        return self._registry.get_status(operation), None

    async def execute(
        self,
        operation: str,
        data: Any = None,
        *,
        force_rest: bool = False,
        force_legacy: bool = False,
        fallback: bool = True,
        streaming: bool = False,
        method: str | None = None,
        timeout: float | None = None,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """
        Execute an operation and return its decoded payload.

        Streaming executions return ``{"chunks": [...], "streaming": True}``
        after the stream ended.

        Args:
            operation: Operation key
            data: Request payload
            force_rest: Use REST regardless of the registry
            force_legacy: Use the legacy SDK regardless of the registry
            fallback: Retry once on the alternate backend on failure
            streaming: Consume an incrementally delivered response
            method: HTTP method override for unmapped operations
            timeout: Per-call timeout in seconds
            on_chunk: Chunk callback for streaming executions
            cancel_event: Cancellation signal for streaming executions

        Returns:
            The decoded payload

        Raises:
            ValueError: If both force flags are set
            AdapterNotRegisteredError: If the resolved backend has no adapter
            ApiError: The primary error (no fallback) or the fallback's
                error, chained from the primary error
        """
        options = ExecuteOptions(
            force_rest=force_rest,
            force_legacy=force_legacy,
            fallback=fallback,
            streaming=streaming,
            method=method,
            timeout=timeout,
        )
        result = await self.execute_result(
            operation,
            data,
            options,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        if result.streaming:
            return {"chunks": result.chunks, "streaming": True}
        return result.data

    async def execute_result(
        self,
        operation: str,
        data: Any = None,
        options: ExecuteOptions | None = None,
        *,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BackendResult:
        """
        Execute an operation and return the normalized BackendResult.

        Same semantics as execute(); useful when the caller needs to know
        which backend actually answered.
        """
        options = options or ExecuteOptions()
        primary, experiment_id = self.resolve_target(operation, options)
        adapter = self.get_adapter(primary)

        with self._tracer.span(
            "switchover.router.execute",
            {
                ATTR_OPERATION: operation,
                ATTR_BACKEND: primary.value,
                ATTR_FALLBACK_ENABLED: options.fallback and not options.streaming,
                ATTR_STREAMING: options.streaming,
                ATTR_EXPERIMENT_ID: experiment_id or "",
            },
        ) as span:
            logger.debug("Executing %s on %s", operation, primary.value)
            try:
                return await self._attempt(
                    adapter,
                    operation,
                    data,
                    options,
                    experiment_id=experiment_id,
                    on_chunk=on_chunk,
                    cancel_event=cancel_event,
                )
            except Exception as primary_error:
                if span is not None:
                    span.set_attribute(ATTR_ERROR_TYPE, type(primary_error).__name__)
                if options.streaming or not options.fallback:
                    raise
                alternate = primary.alternate
                fallback_adapter = self._adapters.get(alternate)
                if fallback_adapter is None:
                    logger.warning(
                        "%s failed on %s and no %s adapter is registered for fallback",
                        operation,
                        primary.value,
                        alternate.value,
                    )
                    raise
                if span is not None:
                    span.set_attribute(ATTR_FALLBACK_BACKEND, alternate.value)
                return await self._fallback(
                    fallback_adapter,
                    operation,
                    data,
                    options,
                    primary,
                    primary_error,
                )

    async def _fallback(
        self,
        adapter: BackendAdapter,
        operation: str,
        data: Any,
        options: ExecuteOptions,
        primary: BackendTarget,
        primary_error: Exception,
    ) -> BackendResult:
        logger.warning(
            "Primary backend %s failed for %s, trying %s: %s",
            primary.value,
            operation,
            adapter.target.value,
            primary_error,
        )
        self._metrics.record_fallback(operation, primary.value, adapter.target.value)
        try:
            return await self._attempt(adapter, operation, data, options)
        except Exception as fallback_error:
            logger.error(
                "Both backends failed for %s: primary=%r fallback=%r",
                operation,
                primary_error,
                fallback_error,
            )
            self._notify(
                FallbackEvent(
                    operation=operation,
                    primary=primary,
                    fallback=adapter.target,
                    primary_error=primary_error,
                    fallback_error=fallback_error,
                )
            )
            raise fallback_error from primary_error

    async def _attempt(
        self,
        adapter: BackendAdapter,
        operation: str,
        data: Any,
        options: ExecuteOptions,
        *,
        experiment_id: str | None = None,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BackendResult:
        """Run one attempt on one adapter, recording metrics."""
        backend = adapter.target.value
        start = time.perf_counter()
        try:
            if options.streaming:
                result = await adapter.stream(
                    operation,
                    data,
                    on_chunk,
                    cancel_event=cancel_event,
                    timeout=options.timeout,
                )
            else:
                result = await adapter.execute(
                    operation,
                    data,
                    method=options.method,
                    timeout=options.timeout,
                )
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            self._metrics.record_execution(operation, backend, duration_ms, success=False)
            self._record_experiment(experiment_id, adapter.target, duration_ms, success=False)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.record_execution(operation, backend, duration_ms, success=True)
        self._record_experiment(experiment_id, adapter.target, duration_ms, success=True)
        return result

    def _record_experiment(
        self,
        experiment_id: str | None,
        arm: BackendTarget,
        duration_ms: float,
        *,
        success: bool,
    ) -> None:
        if experiment_id is None or self._experiments is None:
            return
        self._experiments.record_metric(experiment_id, arm, "latency", duration_ms)
        self._experiments.record_metric(experiment_id, arm, "success" if success else "error", 1)

    def _notify(self, event: FallbackEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("Fallback listener %r failed", listener, exc_info=True)


def create_migration_router(
    settings: SwitchoverSettings | None = None,
    *,
    legacy_client: Any = None,
    registry: SwitchRegistry | None = None,
    token_manager: TokenManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    secondary_adapter: BackendAdapter | None = None,
    experiments: ABTestController | None = None,
    enable_tracing: bool = True,
) -> MigrationRouter:
    """
    Build a router wired with the REST and legacy adapters.

    Args:
        settings: Settings (loaded from the environment if None)
        legacy_client: Legacy SDK client object
        registry: Registry to use (built from settings if None)
        token_manager: Token source for the REST client
        transport: httpx transport override for the REST client
        secondary_adapter: Adapter for the secondary backend; only
            registered when the secondary backend is enabled
        experiments: Optional A/B controller
        enable_tracing: Whether to enable OpenTelemetry tracing

    Returns:
        Configured MigrationRouter
    """
    from switchover.adapters.legacy import LegacyAdapter
    from switchover.adapters.rest import RestAdapter
    from switchover.config import SwitchoverSettings
    from switchover.transport.client import create_rest_client

    settings = settings or SwitchoverSettings()
    metrics = RoutingMetrics()
    registry = registry or SwitchRegistry.from_settings(
        settings,
        metrics=metrics,
        enable_tracing=enable_tracing,
    )

    rest_client = create_rest_client(
        settings,
        token_manager=token_manager,
        transport=transport,
        enable_tracing=enable_tracing,
    )
    router = MigrationRouter(
        registry,
        {
            BackendTarget.REST: RestAdapter(rest_client),
            BackendTarget.LEGACY: LegacyAdapter(legacy_client),
        },
        experiments=experiments,
        enable_tracing=enable_tracing,
        metrics=metrics,
    )
    if secondary_adapter is not None and settings.enable_secondary_backend:
        router.register_adapter(secondary_adapter)
    return router


__all__ = [
    "MigrationRouter",
    "FallbackListener",
    "create_migration_router",
]

"""
SwitchRegistry - current backend assignment per operation, with history.

The registry is the single source of truth for which backend serves each
operation. Every transition is appended to a bounded history buffer and
emitted to subscribed listeners, which makes every switch observable and
undoable.

Responsibilities:
    - Hold the assignment for every known operation (unknown operations
      report the configured default)
    - Record a SwitchRecord for every applied transition
    - Roll an operation back to its immediately preceding assignment
    - Apply a switch to a batch of operations without aborting on a
      single failure

Usage:
    >>> from switchover.routing import BackendTarget, SwitchRegistry
    >>>
    >>> registry = SwitchRegistry()
    >>> registry.switch_to("getTeams", BackendTarget.REST)
    <BackendTarget.LEGACY: 'legacy'>
    >>> registry.rollback("getTeams")
    <BackendTarget.LEGACY: 'legacy'>
    >>> len(registry.history("getTeams"))
    2
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from switchover.exceptions import BackendNotEnabledError
from switchover.observability import (
    ATTR_BATCH_SIZE,
    ATTR_EXPERIMENT_ID,
    ATTR_FROM_BACKEND,
    ATTR_OPERATION,
    ATTR_TO_BACKEND,
    RoutingMetrics,
    Tracer,
    create_tracer,
)
from switchover.routing.models import (
    BackendTarget,
    BatchSwitchResult,
    SwitchOutcome,
    SwitchRecord,
    default_targets,
)

if TYPE_CHECKING:
    from switchover.config import SwitchoverSettings

logger = logging.getLogger(__name__)

SwitchListener = Callable[[SwitchRecord], None]
SwitchValidator = Callable[[str], Awaitable[bool] | bool]


@dataclass(frozen=True)
class MigrationProgress:
    """
    Aggregate view of how far the migration has progressed.

    Attributes:
        total: Number of known operations
        by_target: Known operations per backend
        percent_rest: Share of known operations served by REST (0-100)
    """

    total: int
    by_target: dict[BackendTarget, int] = field(default_factory=dict)
    percent_rest: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_target": {target.value: count for target, count in self.by_target.items()},
            "percent_rest": self.percent_rest,
        }


class SwitchRegistry:
    """
    Per-operation backend assignment with append-only switch history.

    The registry is an explicit object: construct one per process (or per
    test) and pass it to the components that need it.

    Example:
        >>> registry = SwitchRegistry.from_settings(settings)
        >>> registry.subscribe(lambda record: print(record.to_dict()))
        >>> registry.switch_to("createTeam", "rest")
    """

    def __init__(
        self,
        seed: Mapping[str, BackendTarget | str] | None = None,
        *,
        default_target: BackendTarget | str = BackendTarget.LEGACY,
        history_capacity: int = 1000,
        allow_secondary: bool = False,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        metrics: RoutingMetrics | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            seed: Initial assignments (not recorded as switches)
            default_target: Target reported for never-switched operations
            history_capacity: Maximum number of retained SwitchRecords
            allow_secondary: Whether operations may switch to SECONDARY
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing
            metrics: Optional RoutingMetrics receiving switch counts
        """
        if history_capacity < 1:
            raise ValueError(f"history_capacity must be at least 1, got {history_capacity}")

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._metrics = metrics
        self._default = BackendTarget(default_target)
        self._allow_secondary = allow_secondary
        self._status: dict[str, BackendTarget] = {}
        self._history: deque[SwitchRecord] = deque(maxlen=history_capacity)
        self._listeners: list[SwitchListener] = []

        for operation, target in (seed or {}).items():
            self._status[operation] = self._check_target(operation, BackendTarget(target))

    @classmethod
    def from_settings(
        cls,
        settings: SwitchoverSettings | None = None,
        *,
        seed: Mapping[str, BackendTarget | str] | None = None,
        **kwargs: Any,
    ) -> SwitchRegistry:
        """
        Build a registry from settings, seeded with the default table.

        With ``use_rest_api`` set, never-switched operations default to REST.

        Args:
            settings: Settings (loaded from the environment if None)
            seed: Seed table overriding the built-in default table
            **kwargs: Extra constructor arguments (tracer, metrics, ...)

        Returns:
            Configured SwitchRegistry
        """
        if settings is None:
            from switchover.config import SwitchoverSettings

            settings = SwitchoverSettings()

        return cls(
            seed if seed is not None else default_targets(),
            default_target=BackendTarget.REST if settings.use_rest_api else BackendTarget.LEGACY,
            history_capacity=settings.history_capacity,
            allow_secondary=settings.enable_secondary_backend,
            **kwargs,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def default_target(self) -> BackendTarget:
        return self._default

    @property
    def allow_secondary(self) -> bool:
        return self._allow_secondary

    @property
    def known_operations(self) -> list[str]:
        return sorted(self._status)

    def get_status(self, operation: str) -> BackendTarget:
        """
        Get the backend currently assigned to an operation.

        Unknown operations are not an error; they report the default.
        """
        return self._status.get(operation, self._default)

    def snapshot(self) -> dict[str, BackendTarget]:
        """Return a copy of every explicit assignment."""
        return dict(self._status)

    def history(
        self,
        operation: str | None = None,
        limit: int | None = None,
    ) -> list[SwitchRecord]:
        """
        Get retained switch records, oldest first.

        Args:
            operation: Only records for this operation (None = all)
            limit: Only the most recent ``limit`` records

        Returns:
            List of SwitchRecords
        """
        records = [r for r in self._history if operation is None or r.operation == operation]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    def progress(self) -> MigrationProgress:
        """Summarize assignments of all known operations."""
        counts = {target: 0 for target in BackendTarget}
        for target in self._status.values():
            counts[target] += 1
        total = len(self._status)
        percent = round(counts[BackendTarget.REST] / total * 100, 1) if total else 0.0
        return MigrationProgress(total=total, by_target=counts, percent_rest=percent)

    # =========================================================================
    # Listeners
    # =========================================================================

    def subscribe(self, listener: SwitchListener) -> None:
        """Register a callback invoked with every new SwitchRecord."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SwitchListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, record: SwitchRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.warning(
                    "Switch listener %r failed for %s",
                    listener,
                    record.operation,
                    exc_info=True,
                )

    # =========================================================================
    # Mutations
    # =========================================================================

    def _check_target(self, operation: str, target: BackendTarget) -> BackendTarget:
        if target == BackendTarget.SECONDARY and not self._allow_secondary:
            raise BackendNotEnabledError(operation, target)
        return target

    def set_status(
        self,
        operation: str,
        target: BackendTarget | str,
        *,
        experiment_id: str | None = None,
    ) -> SwitchRecord:
        """
        Assign a backend and record the transition.

        Always writes exactly one SwitchRecord, even when the target is
        unchanged. Use switch_to() for an idempotent switch.

        Args:
            operation: Operation key (unknown keys become known)
            target: Backend to assign
            experiment_id: Experiment causing the switch, if any

        Returns:
            The new SwitchRecord

        Raises:
            BackendNotEnabledError: If target is SECONDARY and the
                secondary backend is not enabled
        """
        target = self._check_target(operation, BackendTarget(target))
        previous = self.get_status(operation)

        with self._tracer.span(
            "switchover.registry.set_status",
            {
                ATTR_OPERATION: operation,
                ATTR_FROM_BACKEND: previous.value,
                ATTR_TO_BACKEND: target.value,
                ATTR_EXPERIMENT_ID: experiment_id or "",
            },
        ):
            self._status[operation] = target
            record = SwitchRecord(
                operation=operation,
                from_target=previous,
                to_target=target,
                experiment_id=experiment_id,
            )
            self._history.append(record)

        if self._metrics is not None:
            self._metrics.record_switch(operation, previous.value, target.value)

        logger.info(
            "Switched %s: %s -> %s%s",
            operation,
            previous.value,
            target.value,
            f" (experiment {experiment_id})" if experiment_id else "",
        )
        self._emit(record)
        return record

    def switch_to(
        self,
        operation: str,
        target: BackendTarget | str,
        *,
        experiment_id: str | None = None,
    ) -> BackendTarget:
        """
        Switch an operation to a backend.

        Switching to the backend that is already assigned is a no-op: no
        record is written and no listener is called.

        Returns:
            The previously assigned backend
        """
        target = BackendTarget(target)
        previous = self.get_status(operation)
        if previous == target:
            logger.debug("%s already on %s, switch skipped", operation, target.value)
            return previous
        self.set_status(operation, target, experiment_id=experiment_id)
        return previous

    def rollback(self, operation: str) -> BackendTarget | None:
        """
        Undo the most recent switch of an operation.

        Re-applies the ``from_target`` of the operation's latest record as
        a new switch; history is never deleted. Calling rollback twice
        therefore undoes the undo.

        Returns:
            The restored backend, or None when the operation has no
            retained history
        """
        for record in reversed(self._history):
            if record.operation == operation:
                logger.info("Rolling back %s to %s", operation, record.from_target.value)
                self.set_status(operation, record.from_target)
                return record.from_target
        logger.debug("No switch history for %s, rollback skipped", operation)
        return None

    async def switch_many(
        self,
        operations: Iterable[str],
        target: BackendTarget | str,
        *,
        parallel: bool = False,
        validator: SwitchValidator | None = None,
        experiment_id: str | None = None,
    ) -> BatchSwitchResult:
        """
        Switch several operations to one backend.

        Each operation's switch is applied individually; a failure (a
        raised exception or a validator returning False) is collected and
        does not stop the others.

        Args:
            operations: Operation keys
            target: Backend to switch to
            parallel: Run per-operation validation concurrently
            validator: Optional check run before each switch
            experiment_id: Experiment causing the switch, if any

        Returns:
            BatchSwitchResult with one outcome per operation, in input order
        """
        target = BackendTarget(target)
        ops = list(operations)

        async def apply(operation: str) -> SwitchOutcome:
            if validator is not None:
                ok = validator(operation)
                if inspect.isawaitable(ok):
                    ok = await ok
                if not ok:
                    raise ValueError(f"Validation failed for {operation}")
            previous = self.switch_to(operation, target, experiment_id=experiment_id)
            return SwitchOutcome(operation=operation, success=True, previous=previous)

        with self._tracer.span(
            "switchover.registry.switch_many",
            {ATTR_TO_BACKEND: target.value, ATTR_BATCH_SIZE: len(ops)},
        ):
            if parallel:
                results = await asyncio.gather(
                    *(apply(op) for op in ops),
                    return_exceptions=True,
                )
            else:
                results = []
                for op in ops:
                    try:
                        results.append(await apply(op))
                    except Exception as e:
                        results.append(e)

        outcomes: list[SwitchOutcome] = []
        for op, result in zip(ops, results, strict=True):
            if isinstance(result, SwitchOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                logger.warning("Batch switch of %s to %s failed: %s", op, target.value, result)
                outcomes.append(SwitchOutcome(operation=op, success=False, error=result))
            else:
                raise result

        return BatchSwitchResult(target=target, outcomes=tuple(outcomes))


__all__ = [
    "SwitchRegistry",
    "SwitchListener",
    "SwitchValidator",
    "MigrationProgress",
]

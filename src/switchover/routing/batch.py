"""
Batch migration plans and guarded single-operation migrations.

A plan is a named group of operations switched together. Executing a
plan uses the registry's batch switch; with ``rollback_on_error`` any
operation already switched is rolled back when another one fails, so a
plan either lands completely or leaves the registry where it was.

Example:
    >>> manager = BatchMigrationManager(registry)
    >>> manager.create_plan("core", MIGRATION_PRESETS["core"])
    >>> result = await manager.execute_plan("core")
    >>> result.all_succeeded
    True
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from switchover.config import BatchOptions, SwitchoverSettings
from switchover.exceptions import PlanNotFoundError
from switchover.routing.models import BackendTarget, BatchSwitchResult
from switchover.routing.registry import SwitchRegistry, SwitchValidator

logger = logging.getLogger(__name__)

# Operation groups migrated together during the rollout
MIGRATION_PRESETS: dict[str, tuple[str, ...]] = {
    "core": ("UserProfile", "UserProgress", "CoachConversation"),
    "social": ("StudyGroup", "PeerFeedback"),
    "gamification": ("Challenge", "Trophy", "Badge", "MasteryLevel"),
    "learning": ("LearningPathway", "DevelopmentPlan"),
    "analytics": ("Analytics",),
    "final": (
        "ChatMessage",
        "DataEnrichment",
        "TimeSeriesData",
        "GoalMapping",
        "ForcePromptCard",
    ),
    "teams": ("Team",),
}


class PlanStatus(str, Enum):
    """Lifecycle of a batch migration plan."""

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class MigrationBatchPlan:
    """
    A named group of operations switched together.

    Attributes:
        name: Plan name
        operations: Operation keys in the plan
        options: Batch options
        status: Current plan status
        result: Result of the last execution
        switched: Operations whose assignment changed in the last execution
        created_at: When the plan was created
    """

    name: str
    operations: tuple[str, ...]
    options: BatchOptions = field(default_factory=BatchOptions)
    status: PlanStatus = PlanStatus.CREATED
    result: BatchSwitchResult | None = None
    switched: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def progress(self) -> int:
        """Percentage of operations switched by the last execution."""
        if self.result is None or not self.operations:
            return 0
        return round(len(self.result.succeeded) / len(self.operations) * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "operations": list(self.operations),
            "status": self.status.value,
            "progress": self.progress,
            "failed": self.result.failed if self.result else [],
            "created_at": self.created_at.isoformat(),
        }


class BatchMigrationManager:
    """
    Creates, executes and rolls back batch migration plans.

    Args:
        registry: Registry the plans switch
        validator: Check run before each operation switch when a plan's
            options enable validation
        default_options: Options for plans created without explicit options
    """

    def __init__(
        self,
        registry: SwitchRegistry,
        validator: SwitchValidator | None = None,
        *,
        default_options: BatchOptions | None = None,
    ) -> None:
        self._registry = registry
        self._validator = validator
        self._default_options = default_options or BatchOptions()
        self._plans: dict[str, MigrationBatchPlan] = {}

    @classmethod
    def from_settings(
        cls,
        registry: SwitchRegistry,
        settings: SwitchoverSettings,
        validator: SwitchValidator | None = None,
    ) -> BatchMigrationManager:
        """Build a manager whose plans default to the configured parallelism."""
        return cls(
            registry,
            validator,
            default_options=BatchOptions(parallel=settings.batch_parallel),
        )

    def create_plan(
        self,
        name: str,
        operations: Iterable[str],
        options: BatchOptions | None = None,
    ) -> MigrationBatchPlan:
        """Create (or replace) a named plan."""
        plan = MigrationBatchPlan(
            name=name,
            operations=tuple(operations),
            options=options or self._default_options,
        )
        self._plans[name] = plan
        logger.debug("Created migration plan %s with %d operations", name, len(plan.operations))
        return plan

    def create_preset_plan(self, preset: str, options: BatchOptions | None = None) -> MigrationBatchPlan:
        """
        Create a plan from MIGRATION_PRESETS, named after the preset.

        Raises:
            PlanNotFoundError: If the preset does not exist
        """
        if preset not in MIGRATION_PRESETS:
            raise PlanNotFoundError(preset)
        return self.create_plan(preset, MIGRATION_PRESETS[preset], options)

    def get_plan(self, name: str) -> MigrationBatchPlan | None:
        return self._plans.get(name)

    def list_plans(self) -> list[MigrationBatchPlan]:
        return list(self._plans.values())

    async def execute_plan(
        self,
        name: str,
        target: BackendTarget | str = BackendTarget.REST,
    ) -> BatchSwitchResult:
        """
        Switch every operation of a plan to a backend.

        Args:
            name: Plan name
            target: Backend to switch to

        Returns:
            BatchSwitchResult of the switch

        Raises:
            PlanNotFoundError: If no plan has this name
        """
        plan = self._plans.get(name)
        if plan is None:
            raise PlanNotFoundError(name)

        target = BackendTarget(target)
        logger.info("Executing migration plan %s -> %s", name, target.value)
        plan.status = PlanStatus.RUNNING

        validator = self._validator if plan.options.validate else None
        result = await self._registry.switch_many(
            plan.operations,
            target,
            parallel=plan.options.parallel,
            validator=validator,
        )
        plan.result = result
        plan.switched = [
            o.operation for o in result.outcomes if o.success and o.previous != target
        ]

        if result.all_succeeded:
            plan.status = PlanStatus.COMPLETED
            logger.info(
                "Migration plan %s completed: %d/%d operations",
                name,
                len(result.succeeded),
                len(plan.operations),
            )
            return result

        plan.status = PlanStatus.FAILED
        logger.error("Migration plan %s failed for: %s", name, ", ".join(result.failed))
        if plan.options.rollback_on_error:
            self.rollback_plan(name)
        return result

    def rollback_plan(self, name: str) -> list[str]:
        """
        Roll back the operations switched by the plan's last execution.

        Returns:
            Operations that were rolled back

        Raises:
            PlanNotFoundError: If no plan has this name
        """
        plan = self._plans.get(name)
        if plan is None:
            raise PlanNotFoundError(name)

        rolled_back = []
        for operation in plan.switched:
            if self._registry.rollback(operation) is not None:
                rolled_back.append(operation)
        plan.switched = []
        plan.status = PlanStatus.ROLLED_BACK
        logger.info("Rolled back migration plan %s (%d operations)", name, len(rolled_back))
        return rolled_back


async def migrate_operation(
    registry: SwitchRegistry,
    operation: str,
    migration_fn: Callable[[], Awaitable[Any] | Any] | None = None,
    *,
    target: BackendTarget | str = BackendTarget.REST,
    dry_run: bool = False,
    rollback_on_error: bool = True,
) -> BackendTarget:
    """
    Run a migration step for one operation, then switch it.

    If ``migration_fn`` raises, the operation is restored to the backend
    it had before (when ``rollback_on_error``) and the error propagates.
    A dry run skips both the migration step and the switch.

    Args:
        registry: Registry holding the assignment
        operation: Operation key
        migration_fn: Sync or async step to run before switching
        target: Backend to switch to
        dry_run: Only log what would happen
        rollback_on_error: Restore the previous backend on failure

    Returns:
        The backend assigned before the migration
    """
    target = BackendTarget(target)
    previous = registry.get_status(operation)
    logger.info("Starting migration for %s (%s -> %s)", operation, previous.value, target.value)

    if dry_run:
        logger.info("Dry run: %s would switch to %s", operation, target.value)
        return previous

    try:
        if migration_fn is not None:
            outcome = migration_fn()
            if inspect.isawaitable(outcome):
                await outcome
        registry.switch_to(operation, target)
    except Exception:
        logger.error("Migration failed for %s", operation, exc_info=True)
        if rollback_on_error:
            registry.switch_to(operation, previous)
            logger.info("Restored %s to %s", operation, previous.value)
        raise

    logger.info("Migration completed for %s", operation)
    return previous


__all__ = [
    "MIGRATION_PRESETS",
    "PlanStatus",
    "MigrationBatchPlan",
    "BatchMigrationManager",
    "migrate_operation",
]

"""
Backend routing: switch registry, migration router and batch plans.

Example:
    >>> from switchover.routing import BackendTarget, MigrationRouter, SwitchRegistry
    >>>
    >>> registry = SwitchRegistry.from_settings(settings)
    >>> router = MigrationRouter(registry, adapters)
    >>> registry.switch_to("getTeams", BackendTarget.REST)
    >>> teams = await router.execute("getTeams")
"""

from switchover.routing.batch import (
    MIGRATION_PRESETS,
    BatchMigrationManager,
    MigrationBatchPlan,
    PlanStatus,
    migrate_operation,
)
from switchover.routing.models import (
    DEFAULT_ENTITY_TARGETS,
    DEFAULT_FUNCTION_TARGETS,
    BackendTarget,
    BatchSwitchResult,
    FallbackEvent,
    OperationNamespace,
    SwitchOutcome,
    SwitchRecord,
    default_targets,
    namespace_of,
)
from switchover.routing.registry import (
    MigrationProgress,
    SwitchListener,
    SwitchRegistry,
    SwitchValidator,
)
from switchover.routing.router import (
    FallbackListener,
    MigrationRouter,
    create_migration_router,
)

__all__ = [
    # Models
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
    # Registry
    "SwitchRegistry",
    "SwitchListener",
    "SwitchValidator",
    "MigrationProgress",
    # Router
    "MigrationRouter",
    "FallbackListener",
    "create_migration_router",
    # Batch
    "MIGRATION_PRESETS",
    "PlanStatus",
    "MigrationBatchPlan",
    "BatchMigrationManager",
    "migrate_operation",
]

"""
switchover - Incremental backend migration for Python services.

This library provides:
- Authenticated REST transport with single-flight token refresh and streaming
- Uniform adapters over a REST backend and a legacy SDK
- Per-operation switch registry with history and rollback
- Migration router with single fallback to the alternate backend
- A/B experiments, latency comparison and response validation
- Batch migration plans with presets
- Static migration planner for source trees
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("switchover")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Adapters
from switchover.adapters import (
    BackendAdapter,
    BackendResult,
    LegacyAdapter,
    RestAdapter,
)

# Configuration
from switchover.config import (
    BatchOptions,
    ExecuteOptions,
    ExperimentConfig,
    SwitchoverSettings,
)

# Exceptions
from switchover.exceptions import (
    AdapterNotRegisteredError,
    ApiError,
    BackendNotEnabledError,
    ErrorCode,
    OperationNotSupportedError,
    PlanNotFoundError,
    SwitchoverError,
)

# Experiments
from switchover.experiments import (
    ABTestController,
    MigrationValidator,
    PerformanceComparator,
)

# Planner
from switchover.planner import (
    MigrationPatternAnalyzer,
    analyze_codebase,
)

# Routing
from switchover.routing import (
    BackendTarget,
    BatchMigrationManager,
    MigrationRouter,
    SwitchRecord,
    SwitchRegistry,
    create_migration_router,
    migrate_operation,
)

# Transport
from switchover.transport import (
    RestClient,
    TokenManager,
    create_rest_client,
)

__all__ = [
    "__version__",
    # Exceptions
    "SwitchoverError",
    "ApiError",
    "ErrorCode",
    "OperationNotSupportedError",
    "AdapterNotRegisteredError",
    "BackendNotEnabledError",
    "PlanNotFoundError",
    # Configuration
    "SwitchoverSettings",
    "ExecuteOptions",
    "ExperimentConfig",
    "BatchOptions",
    # Transport
    "RestClient",
    "TokenManager",
    "create_rest_client",
    # Adapters
    "BackendAdapter",
    "BackendResult",
    "RestAdapter",
    "LegacyAdapter",
    # Routing
    "BackendTarget",
    "SwitchRecord",
    "SwitchRegistry",
    "MigrationRouter",
    "create_migration_router",
    "BatchMigrationManager",
    "migrate_operation",
    # Experiments
    "ABTestController",
    "PerformanceComparator",
    "MigrationValidator",
    # Planner
    "MigrationPatternAnalyzer",
    "analyze_codebase",
]

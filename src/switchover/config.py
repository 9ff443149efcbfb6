"""
Configuration for switchover.

This module provides:
- SwitchoverSettings: Environment-driven settings (prefix SWITCHOVER_)
- ExecuteOptions: Per-call options for MigrationRouter.execute()
- ExperimentConfig: Options for starting an A/B experiment
- BatchOptions: Options for batch switches and migration plans
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


class SwitchoverSettings(BaseSettings):
    """
    Settings loaded from environment variables.

    Example:
        >>> # SWITCHOVER_REST_BASE_URL=https://api.example.com/api/v1
        >>> settings = SwitchoverSettings()
        >>> settings.rest_base_url
        'https://api.example.com/api/v1'
    """

    model_config = SettingsConfigDict(
        env_prefix="SWITCHOVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # REST backend
    rest_base_url: str = "http://localhost:3001/api/v1"
    request_timeout: float = 30.0
    stream_timeout: float = 120.0

    # Identity provider (issues and refreshes bearer tokens)
    identity_url: str | None = None
    identity_api_key: str | None = None
    token_expiry_leeway: float = 0.0

    # Backend selection
    use_rest_api: bool = False
    enable_secondary_backend: bool = False

    # Switch registry
    history_capacity: int = 1000
    batch_parallel: bool = False


@dataclass(frozen=True)
class ExecuteOptions:
    """
    Options for a single MigrationRouter.execute() call.

    Attributes:
        force_rest: Execute against REST regardless of the registry
        force_legacy: Execute against the legacy SDK regardless of the registry
        fallback: Retry once on the other backend when the primary fails
        streaming: Consume an incrementally delivered response (no fallback)
        method: HTTP method override for operations without a table entry
        timeout: Per-call timeout in seconds (None = client default)
    """

    force_rest: bool = False
    force_legacy: bool = False
    fallback: bool = True
    streaming: bool = False
    method: str | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.force_rest and self.force_legacy:
            raise ValueError(
                "force_rest and force_legacy are mutually exclusive. "
                "Pass at most one of them."
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}.")


@dataclass(frozen=True)
class ExperimentConfig:
    """
    Configuration for an A/B experiment.

    Attributes:
        duration_seconds: How long the experiment runs before it is expired
        traffic_split: Probability (0-1) that a draw selects the REST arm
        metrics: Metric kinds the experiment collects
    """

    duration_seconds: float = 3600.0
    traffic_split: float = 0.5
    metrics: tuple[str, ...] = ("latency", "error", "success")

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise ValueError(
                f"duration_seconds must be positive, got {self.duration_seconds}. "
                "Use a value like 3600.0 (default) for a one hour experiment."
            )
        if not 0.0 <= self.traffic_split <= 1.0:
            raise ValueError(
                f"traffic_split must be between 0.0 and 1.0, got {self.traffic_split}."
            )
        unknown = set(self.metrics) - {"latency", "error", "success"}
        if unknown:
            raise ValueError(f"Unknown metric kinds: {sorted(unknown)}")


@dataclass(frozen=True)
class BatchOptions:
    """
    Options for batch switching.

    Attributes:
        parallel: Apply switches concurrently instead of one at a time
        rollback_on_error: Roll back already-switched operations when any fails
        validate: Run the plan's validator before each switch
    """

    parallel: bool = False
    rollback_on_error: bool = True
    validate: bool = True


__all__ = [
    "SwitchoverSettings",
    "ExecuteOptions",
    "ExperimentConfig",
    "BatchOptions",
]

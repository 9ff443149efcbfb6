"""
Backend adapters.

Each adapter implements the same logical operation set for one backend:

- RestAdapter: operation -> REST endpoint and HTTP method
- LegacyAdapter: operation -> legacy SDK method name

Both return a BackendResult so downstream code never branches on which
backend served the call.
"""

from switchover.adapters.base import BackendAdapter, BackendResult, ChunkCallback
from switchover.adapters.legacy import LegacyAdapter, normalize_payload
from switchover.adapters.mapping import (
    LEGACY_METHODS,
    REST_ENDPOINTS,
    Endpoint,
    ResolvedEndpoint,
    endpoint_for,
    legacy_method_for,
    resolve_endpoint,
)
from switchover.adapters.rest import RestAdapter

__all__ = [
    "BackendAdapter",
    "BackendResult",
    "ChunkCallback",
    "RestAdapter",
    "LegacyAdapter",
    "normalize_payload",
    "Endpoint",
    "ResolvedEndpoint",
    "REST_ENDPOINTS",
    "LEGACY_METHODS",
    "endpoint_for",
    "legacy_method_for",
    "resolve_endpoint",
]

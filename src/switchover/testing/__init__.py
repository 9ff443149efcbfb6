"""
Test utilities for switchover.

Components:
    RoutingTestHarness: Registry, router and fake backends wired together
    FakeBackendAdapter: Scriptable backend recording its calls
    FakeTokenProvider: Identity provider double counting refreshes
    FakeLegacySdk: Legacy SDK client double
    make_token: Encode a JWT with a chosen expiry

Example:
    >>> from switchover.testing import RoutingTestHarness
    >>>
    >>> harness = RoutingTestHarness()
    >>> harness.registry.switch_to("getTeams", "rest")
    >>> await harness.router.execute("getTeams")

Note:
    This module is optional and intended for test code only. It should not
    be imported in production code paths.
"""

from switchover.testing.fakes import (
    AdapterCall,
    FakeBackendAdapter,
    FakeLegacySdk,
    FakeTokenProvider,
    make_token,
)
from switchover.testing.harness import RoutingTestHarness

__all__ = [
    "RoutingTestHarness",
    "AdapterCall",
    "FakeBackendAdapter",
    "FakeTokenProvider",
    "FakeLegacySdk",
    "make_token",
]

"""
Backend adapter interface and the shared result shape.

Every backend translates an abstract operation name plus payload into its
own concrete calls and normalizes what comes back into a BackendResult, so
the router and its callers never branch on which backend answered.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from switchover.routing.models import BackendTarget

ChunkCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


class BackendResult(BaseModel):
    """
    Normalized result of one operation execution.

    Attributes:
        data: Decoded payload (None for streaming results)
        backend: Backend that produced the result
        operation: Operation key that was executed
        streaming: Whether the result was consumed as a stream
        chunks: Chunks received for streaming results
    """

    model_config = ConfigDict(frozen=True)

    data: Any = None
    backend: BackendTarget
    operation: str
    streaming: bool = False
    chunks: list[dict[str, Any]] = Field(default_factory=list)


class BackendAdapter(ABC):
    """
    Strategy interface implemented once per backend.

    Implementations:
    - RestAdapter: operation -> endpoint + HTTP method over RestClient
    - LegacyAdapter: operation -> legacy SDK method name
    """

    @property
    @abstractmethod
    def target(self) -> BackendTarget:
        """Backend this adapter talks to."""
        ...

    @abstractmethod
    async def execute(
        self,
        operation: str,
        data: Any = None,
        *,
        method: str | None = None,
        timeout: float | None = None,
    ) -> BackendResult:
        """
        Execute an operation.

        Args:
            operation: Operation key
            data: Request payload
            method: HTTP method override for unmapped operations
            timeout: Per-call timeout in seconds

        Returns:
            Normalized result

        Raises:
            ApiError: On any failure
        """
        ...

    @abstractmethod
    async def stream(
        self,
        operation: str,
        data: Any = None,
        on_chunk: ChunkCallback | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> BackendResult:
        """
        Execute an operation whose response is delivered incrementally.

        Each chunk is passed to ``on_chunk`` as it arrives and is also
        collected into the returned result.

        Raises:
            ApiError: On any failure
        """
        ...


__all__ = [
    "BackendAdapter",
    "BackendResult",
    "ChunkCallback",
]

"""
LegacyAdapter - executes operations through the embedded legacy SDK.

The SDK client is any object exposing one method per operation (sync or
async). Whatever it returns is normalized into a plain payload: pydantic
models are dumped, dataclasses converted, objects with ``to_dict()``
converted; anything else is passed through.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from typing import Any

from pydantic import BaseModel

from switchover.adapters.base import BackendAdapter, BackendResult, ChunkCallback
from switchover.adapters.mapping import legacy_method_for
from switchover.exceptions import ApiError, ErrorCode, OperationNotSupportedError
from switchover.routing.models import BackendTarget

logger = logging.getLogger(__name__)


def normalize_payload(value: Any) -> Any:
    """Convert SDK return values into plain JSON-like data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, list | tuple):
        return [normalize_payload(item) for item in value]
    return value


class LegacyAdapter(BackendAdapter):
    """
    Adapter mapping operations to legacy SDK method names.

    Example:
        >>> adapter = LegacyAdapter(sdk)
        >>> result = await adapter.execute("generateAICoaching", {"prompt": "hi"})
        >>> # calls sdk.generateCoaching({"prompt": "hi"})
    """

    def __init__(self, sdk_client: Any) -> None:
        self._sdk = sdk_client

    @property
    def target(self) -> BackendTarget:
        return BackendTarget.LEGACY

    async def _call(self, operation: str, data: Any) -> Any:
        method_name = legacy_method_for(operation)
        method = getattr(self._sdk, method_name, None) if self._sdk is not None else None
        if method is None or not callable(method):
            raise OperationNotSupportedError(operation, method_name)

        logger.debug("Legacy SDK %s for %s", method_name, operation)
        try:
            result = method(data)
            if inspect.isawaitable(result):
                result = await result
        except ApiError:
            raise
        except Exception as e:
            raise ApiError.from_exception(e) from e
        return normalize_payload(result)

    async def execute(
        self,
        operation: str,
        data: Any = None,
        *,
        method: str | None = None,
        timeout: float | None = None,
    ) -> BackendResult:
        if timeout is None:
            payload = await self._call(operation, data)
        else:
            try:
                payload = await asyncio.wait_for(self._call(operation, data), timeout)
            except TimeoutError as e:
                raise ApiError(
                    ErrorCode.NETWORK_ERROR, f"{operation} timed out after {timeout}s", 0
                ) from e
        return BackendResult(data=payload, backend=self.target, operation=operation)

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
        The SDK has no incremental delivery; the whole payload is one chunk.
        """
        result = await self.execute(operation, data, timeout=timeout)
        payload = result.data
        chunk = payload if isinstance(payload, dict) else {"content": payload}
        if cancel_event is not None and cancel_event.is_set():
            return BackendResult(backend=self.target, operation=operation, streaming=True)
        if on_chunk is not None:
            delivered = on_chunk(chunk)
            if inspect.isawaitable(delivered):
                await delivered
        return BackendResult(
            backend=self.target,
            operation=operation,
            streaming=True,
            chunks=[chunk],
        )


__all__ = [
    "LegacyAdapter",
    "normalize_payload",
]

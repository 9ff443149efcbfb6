"""
RestAdapter - executes operations against the REST backend.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

import httpx

from switchover.adapters.base import BackendAdapter, BackendResult, ChunkCallback
from switchover.adapters.mapping import resolve_endpoint
from switchover.exceptions import ApiError, ErrorCode
from switchover.routing.models import BackendTarget
from switchover.transport.client import RestClient

logger = logging.getLogger(__name__)


def _decode(response: httpx.Response) -> Any:
    """Decode a JSON body; an empty body decodes to None."""
    if not response.is_success:
        raise ApiError(
            ErrorCode.HTTP_ERROR,
            f"HTTP {response.status_code}: {response.reason_phrase}",
            response.status_code,
        )
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise ApiError(
            ErrorCode.UNKNOWN_ERROR,
            f"Invalid JSON response: {e}",
            response.status_code,
        ) from e


class RestAdapter(BackendAdapter):
    """
    Adapter mapping operations to REST endpoints.

    Example:
        >>> adapter = RestAdapter(create_rest_client(settings))
        >>> result = await adapter.execute("getTeam", {"id": "t-1"})
        >>> result.data
        {'id': 't-1', 'name': 'Platform'}
    """

    def __init__(self, client: RestClient) -> None:
        self._client = client

    @property
    def target(self) -> BackendTarget:
        return BackendTarget.REST

    @property
    def client(self) -> RestClient:
        return self._client

    async def execute(
        self,
        operation: str,
        data: Any = None,
        *,
        method: str | None = None,
        timeout: float | None = None,
    ) -> BackendResult:
        try:
            resolved = resolve_endpoint(operation, data, method)
        except ValueError as e:
            raise ApiError.from_exception(e) from e

        logger.debug("REST %s %s for %s", resolved.method, resolved.path, operation)
        response = await self._client.request(
            resolved.path,
            method=resolved.method,
            body=resolved.body,
            params=resolved.params,
            timeout=timeout,
        )
        return BackendResult(
            data=_decode(response),
            backend=self.target,
            operation=operation,
        )

    async def stream(
        self,
        operation: str,
        data: Any = None,
        on_chunk: ChunkCallback | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> BackendResult:
        try:
            resolved = resolve_endpoint(operation, data, "POST")
        except ValueError as e:
            raise ApiError.from_exception(e, code=ErrorCode.STREAM_ERROR) from e

        chunks: list[dict[str, Any]] = []

        async def collect(chunk: dict[str, Any]) -> None:
            chunks.append(chunk)
            if on_chunk is not None:
                result = on_chunk(chunk)
                if inspect.isawaitable(result):
                    await result

        await self._client.stream(
            resolved.path,
            resolved.body,
            collect,
            params=resolved.params,
            cancel_event=cancel_event,
            timeout=timeout,
        )
        return BackendResult(
            backend=self.target,
            operation=operation,
            streaming=True,
            chunks=chunks,
        )


__all__ = ["RestAdapter"]

"""
RestClient - Authenticated HTTP client for the REST backend.

Responsibilities:
    - Attach a valid bearer token to every request (refreshing it first
      when it has expired)
    - Run request interceptors, which may mutate the outgoing config
    - Run response interceptors, which may raise on non-2xx responses
    - Consume newline-delimited streamed responses chunk by chunk
    - Report transport failures as NETWORK_ERROR (requests) or
      STREAM_ERROR (streams)

Usage:
    >>> from switchover.transport import create_rest_client
    >>>
    >>> client = create_rest_client(settings, token_manager=tokens)
    >>> response = await client.get("/teams")
    >>> teams = response.json()
    >>>
    >>> async def on_chunk(chunk):
    ...     print(chunk.get("content", ""), end="")
    >>> await client.stream("/ai/coaching", {"prompt": "hi"}, on_chunk)
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from switchover.exceptions import ApiError, ErrorCode
from switchover.observability import (
    ATTR_HTTP_METHOD,
    ATTR_HTTP_STATUS_CODE,
    ATTR_HTTP_URL,
    SpanKindEnum,
    Tracer,
    create_tracer,
)
from switchover.transport.auth import TokenManager
from switchover.transport.streaming import LineRecordDecoder, StreamChunk

if TYPE_CHECKING:
    from switchover.config import SwitchoverSettings

logger = logging.getLogger(__name__)


@dataclass
class RequestConfig:
    """
    Outgoing request configuration handed to request interceptors.

    Interceptors may change any field in place before the request is sent.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: dict[str, Any] | None = None
    timeout: float | None = None

    def encoded_body(self) -> bytes | None:
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


RequestInterceptor = Callable[[RequestConfig], Awaitable[None] | None]
ResponseInterceptor = Callable[[httpx.Response, RequestConfig], Awaitable[None] | None]
ChunkHandler = Callable[[StreamChunk], Awaitable[None] | None]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


async def _read_error_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON error body, returning {} when there is none."""
    try:
        await response.aread()
        body = response.json()
    except (ValueError, httpx.HTTPError):
        return {}
    return body if isinstance(body, dict) else {}


class RestClient:
    """
    HTTP client with token management and interceptors.

    Example:
        >>> client = RestClient("https://api.example.com/api/v1")
        >>> client.add_request_interceptor(lambda config: None)
        >>> response = await client.request("/users/profile")
    """

    def __init__(
        self,
        base_url: str = "/api/v1",
        *,
        token_manager: TokenManager | None = None,
        timeout: float = 30.0,
        stream_timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Prefix prepended to every request path
            token_manager: Source of bearer tokens (None = unauthenticated)
            timeout: Default request timeout in seconds
            stream_timeout: Default streaming timeout in seconds
            http_client: Pre-built httpx client (takes ownership)
            transport: httpx transport, used when no client is given
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager or TokenManager()
        self._timeout = timeout
        self._stream_timeout = stream_timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout, transport=transport)
        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []

    # =========================================================================
    # Interceptors
    # =========================================================================

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        self._request_interceptors.append(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        self._response_interceptors.append(interceptor)

    # =========================================================================
    # Requests
    # =========================================================================

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Perform an authenticated request and return the raw response.

        Args:
            path: Path relative to the base URL
            method: HTTP method
            headers: Extra headers
            body: JSON-serializable body, or str/bytes sent verbatim
            params: Query parameters
            timeout: Per-call timeout in seconds (None = client default)

        Returns:
            The httpx response, body already read

        Raises:
            ApiError: NETWORK_ERROR on transport failure or timeout, or
                whatever a response interceptor raised (HTTP_ERROR, ...); UNKNOWN_ERROR
                when the token refresh or a request interceptor fails
        """
        config = await self._build_config(path, method, headers, body, params, timeout)

        with self._tracer.span_with_kind(
            "switchover.http.request",
            SpanKindEnum.CLIENT,
            {ATTR_HTTP_METHOD: config.method, ATTR_HTTP_URL: config.url},
        ) as span:
            try:
                response = await self._http.send(self._to_httpx(config))
            except httpx.TransportError as e:
                logger.debug("Network failure for %s %s: %s", config.method, config.url, e)
                raise ApiError(ErrorCode.NETWORK_ERROR, str(e) or e.__class__.__name__, 0) from e

            if span is not None:
                span.set_attribute(ATTR_HTTP_STATUS_CODE, response.status_code)

            await self._run_response_interceptors(response, config)
            return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request(path, method="GET", **kwargs)

    async def post(self, path: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request(path, method="POST", body=data, **kwargs)

    async def put(self, path: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request(path, method="PUT", body=data, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request(path, method="DELETE", **kwargs)

    async def health(self) -> Any:
        """
        Query the backend health endpoint.

        Returns:
            Decoded JSON body of /health

        Raises:
            ApiError: HEALTH_CHECK_FAILED on any failure
        """
        try:
            response = await self.get("/health")
            return response.json()
        except (ApiError, ValueError) as e:
            raise ApiError(ErrorCode.HEALTH_CHECK_FAILED, str(e), 0) from e

    # =========================================================================
    # Streaming
    # =========================================================================

    async def stream(
        self,
        path: str,
        body: Any = None,
        on_chunk: ChunkHandler | None = None,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        POST and consume a newline-delimited streamed response.

        Every complete line is delivered to ``on_chunk`` as soon as it is
        read; the remainder is flushed at end of stream. Setting
        ``cancel_event`` stops the read loop promptly and releases the
        connection; no chunk is delivered after cancellation.

        Args:
            path: Path relative to the base URL
            body: JSON-serializable request body
            on_chunk: Callback (sync or async) receiving each chunk
            headers: Extra headers
            params: Query parameters
            cancel_event: Event that cancels the stream when set
            timeout: Per-call timeout in seconds (None = stream default)

        Raises:
            ApiError: STREAM_ERROR (or the server's error code) on failure
        """
        config = await self._build_config(
            path,
            "POST",
            headers,
            body,
            params,
            timeout if timeout is not None else self._stream_timeout,
            ErrorCode.STREAM_ERROR,
        )

        with self._tracer.span_with_kind(
            "switchover.http.stream",
            SpanKindEnum.CLIENT,
            {ATTR_HTTP_METHOD: config.method, ATTR_HTTP_URL: config.url},
        ):
            try:
                response = await self._http.send(self._to_httpx(config), stream=True)
            except httpx.TransportError as e:
                raise ApiError(ErrorCode.STREAM_ERROR, str(e) or e.__class__.__name__, 0) from e

            try:
                if not response.is_success:
                    error = await _read_error_body(response)
                    raise ApiError(
                        error.get("code") or ErrorCode.STREAM_ERROR,
                        error.get("message") or f"HTTP {response.status_code}",
                        response.status_code,
                        details=error,
                    )
                await self._consume(response, on_chunk, cancel_event)
            except ApiError:
                raise
            except Exception as e:
                raise ApiError(ErrorCode.STREAM_ERROR, str(e) or e.__class__.__name__, 0) from e
            finally:
                await response.aclose()

    async def _consume(
        self,
        response: httpx.Response,
        on_chunk: ChunkHandler | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        decoder = LineRecordDecoder()
        reads = response.aiter_bytes()

        while True:
            data = await self._next_read(reads, cancel_event)
            if data is None:
                break
            for chunk in decoder.feed(data):
                if cancel_event is not None and cancel_event.is_set():
                    logger.debug("Stream cancelled by caller")
                    return
                if on_chunk is not None:
                    await _maybe_await(on_chunk(chunk))

        if cancel_event is not None and cancel_event.is_set():
            logger.debug("Stream cancelled by caller")
            return

        for chunk in decoder.flush():
            if on_chunk is not None:
                await _maybe_await(on_chunk(chunk))

    @staticmethod
    async def _next_read(
        reads: AsyncIterator[bytes],
        cancel_event: asyncio.Event | None,
    ) -> bytes | None:
        """Wait for the next read; None at end of stream or on cancellation."""
        if cancel_event is None:
            return await anext(reads, None)
        if cancel_event.is_set():
            return None

        read_task = asyncio.ensure_future(anext(reads, None))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {read_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()

        if read_task in done and not cancel_event.is_set():
            return read_task.result()

        read_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, httpx.HTTPError):
            await read_task
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _build_config(
        self,
        path: str,
        method: str,
        headers: dict[str, str] | None,
        body: Any,
        params: dict[str, Any] | None,
        timeout: float | None,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    ) -> RequestConfig:
        """
        Build the request config: auth header, then request interceptors.

        Raises:
            ApiError: A failed token refresh or interceptor, wrapped with
                ``error_code`` unless it already is an ApiError
        """
        config = RequestConfig(
            method=method.upper(),
            url=f"{self.base_url}{path}",
            headers={"Content-Type": "application/json", **(headers or {})},
            body=body,
            params=params,
            timeout=timeout,
        )

        try:
            token = await self.token_manager.get_auth_token()
            if token:
                config.headers["Authorization"] = f"Bearer {token}"

            for interceptor in self._request_interceptors:
                await _maybe_await(interceptor(config))
        except ApiError:
            raise
        except Exception as e:
            logger.debug("Could not prepare %s %s: %r", config.method, config.url, e)
            raise ApiError.from_exception(e, code=error_code) from e
        return config

    def _to_httpx(self, config: RequestConfig) -> httpx.Request:
        timeout: Any = httpx.USE_CLIENT_DEFAULT if config.timeout is None else config.timeout
        return self._http.build_request(
            config.method,
            config.url,
            headers=config.headers,
            content=config.encoded_body(),
            params=config.params,
            timeout=timeout,
        )

    async def _run_response_interceptors(
        self,
        response: httpx.Response,
        config: RequestConfig,
    ) -> None:
        for interceptor in self._response_interceptors:
            try:
                await _maybe_await(interceptor(response, config))
            except ApiError:
                raise
            except Exception as e:
                raise ApiError.from_exception(e, status=response.status_code) from e

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


# =============================================================================
# Default interceptors
# =============================================================================


def log_request(config: RequestConfig) -> None:
    """Request interceptor logging every outgoing call at debug level."""
    logger.debug("API Request: %s %s", config.method, config.url)


async def raise_for_error_status(response: httpx.Response, config: RequestConfig) -> None:
    """
    Response interceptor turning non-2xx responses into ApiError.

    The error body's ``code`` and ``message`` are used when present.

    Raises:
        ApiError: HTTP_ERROR (or the server's code) for non-2xx responses
    """
    if response.is_success:
        return
    error = await _read_error_body(response)
    raise ApiError(
        error.get("code") or ErrorCode.HTTP_ERROR,
        error.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}",
        response.status_code,
        details=error,
    )


def create_rest_client(
    settings: SwitchoverSettings | None = None,
    *,
    token_manager: TokenManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    enable_tracing: bool = True,
) -> RestClient:
    """
    Create a RestClient with the default logging and error interceptors.

    Args:
        settings: Settings supplying base URL and timeouts
        token_manager: Token source
        transport: httpx transport override (e.g. httpx.MockTransport)
        enable_tracing: Whether to enable OpenTelemetry tracing

    Returns:
        Configured RestClient
    """
    if settings is None:
        from switchover.config import SwitchoverSettings

        settings = SwitchoverSettings()

    client = RestClient(
        settings.rest_base_url,
        token_manager=token_manager or TokenManager(leeway=settings.token_expiry_leeway),
        timeout=settings.request_timeout,
        stream_timeout=settings.stream_timeout,
        transport=transport,
        enable_tracing=enable_tracing,
    )
    client.add_request_interceptor(log_request)
    client.add_response_interceptor(raise_for_error_status)
    return client


__all__ = [
    "RestClient",
    "RequestConfig",
    "RequestInterceptor",
    "ResponseInterceptor",
    "ChunkHandler",
    "create_rest_client",
    "log_request",
    "raise_for_error_status",
]

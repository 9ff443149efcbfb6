"""
Unit tests for RestClient.

Uses httpx.MockTransport so no network is involved.

Tests for:
- Bearer token attachment and refresh before requests
- Request and response interceptors
- NETWORK_ERROR / HTTP_ERROR mapping
- Streaming: chunk delivery, error bodies, cancellation
- Health check
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

import httpx
import pytest

from switchover.config import SwitchoverSettings
from switchover.exceptions import ApiError, ErrorCode
from switchover.observability import MockTracer, SpanKindEnum
from switchover.testing import FakeTokenProvider, make_token
from switchover.transport import (
    RequestConfig,
    RestClient,
    TokenManager,
    create_rest_client,
    raise_for_error_status,
)

BASE_URL = "https://api.example.com/api/v1"


def _client(handler, **kwargs) -> RestClient:
    return RestClient(
        BASE_URL,
        transport=httpx.MockTransport(handler),
        enable_tracing=False,
        **kwargs,
    )


async def _parts(*parts: bytes, pause: float = 0.0) -> AsyncIterator[bytes]:
    for part in parts:
        if pause:
            await asyncio.sleep(pause)
        yield part


class TestRequests:
    """Tests for RestClient.request() and the verb helpers."""

    @pytest.mark.asyncio
    async def test_get_builds_url_and_params(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as client:
            response = await client.get("/teams", params={"page": 2})

        assert response.json() == {"ok": True}
        assert str(seen[0].url) == f"{BASE_URL}/teams?page=2"
        assert seen[0].method == "GET"
        assert seen[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "t1"})

        async with _client(handler) as client:
            response = await client.post("/teams", {"name": "Blue"})

        assert response.status_code == 201
        assert bodies == [{"name": "Blue"}]

    @pytest.mark.asyncio
    async def test_put_and_delete_methods(self):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(204)

        async with _client(handler) as client:
            await client.put("/teams/t1", {"name": "Red"})
            await client.delete("/teams/t1")

        assert methods == ["PUT", "DELETE"]

    @pytest.mark.asyncio
    async def test_bearer_token_attached(self):
        token = make_token(3600)
        manager = TokenManager()
        manager.set_token(token)
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={})

        async with _client(handler, token_manager=manager) as client:
            await client.get("/users/profile")

        assert headers == [f"Bearer {token}"]

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self):
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            await client.get("/health")

        assert headers == [None]

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_request(self):
        fresh = make_token(3600, sub="fresh")
        provider = FakeTokenProvider([fresh])
        manager = TokenManager(provider)
        manager.set_token(make_token(-60))
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers["Authorization"])
            return httpx.Response(200, json={})

        async with _client(handler, token_manager=manager) as client:
            await asyncio.gather(client.get("/a"), client.get("/b"), client.get("/c"))

        assert headers == [f"Bearer {fresh}"] * 3
        assert provider.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_failed_token_refresh_is_api_error(self):
        outage = ConnectionResetError("identity provider unreachable")
        manager = TokenManager(FakeTokenProvider(error=outage))
        manager.set_token(make_token(-10))
        sent = []

        async with _client(sent.append, token_manager=manager) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert exc_info.value.code == ErrorCode.UNKNOWN_ERROR
        assert "identity provider unreachable" in exc_info.value.message
        assert exc_info.value.__cause__ is outage
        assert sent == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert exc_info.value.status == 0
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams", timeout=0.5)

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_error_status_returned_without_interceptor(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "boom"})

        async with _client(handler) as client:
            response = await client.get("/teams")

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_tracing_records_client_span(self):
        tracer = MockTracer()
        client = RestClient(
            BASE_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
            tracer=tracer,
        )
        async with client:
            await client.get("/teams")

        assert tracer.span_names == ["switchover.http.request"]
        assert tracer.kinds == [SpanKindEnum.CLIENT]


class TestInterceptors:
    """Tests for request and response interceptors."""

    @pytest.mark.asyncio
    async def test_request_interceptors_mutate_config(self):
        seen = []

        def add_header(config: RequestConfig) -> None:
            config.headers["X-Trace"] = "abc"

        async def rewrite_url(config: RequestConfig) -> None:
            config.url = config.url.replace("/old", "/new")

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        async with _client(handler) as client:
            client.add_request_interceptor(add_header)
            client.add_request_interceptor(rewrite_url)
            await client.get("/old")

        assert seen[0].headers["X-Trace"] == "abc"
        assert seen[0].url.path == "/api/v1/new"

    @pytest.mark.asyncio
    async def test_failing_request_interceptor_is_api_error(self):
        def require_tenant(config: RequestConfig) -> None:
            raise KeyError("tenant")

        sent = []

        async with _client(sent.append) as client:
            client.add_request_interceptor(require_tenant)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert exc_info.value.code == ErrorCode.UNKNOWN_ERROR
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert sent == []

    @pytest.mark.asyncio
    async def test_api_error_from_request_interceptor_is_kept(self):
        denied = ApiError(ErrorCode.HTTP_ERROR, "tenant suspended", status=403)

        def suspend(config: RequestConfig) -> None:
            raise denied

        async with _client(lambda request: httpx.Response(200)) as client:
            client.add_request_interceptor(suspend)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert exc_info.value is denied

    @pytest.mark.asyncio
    async def test_response_interceptor_receives_response_and_config(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        async with _client(handler) as client:
            client.add_response_interceptor(lambda r, c: calls.append((r.status_code, c.method)))
            await client.post("/teams", {})

        assert calls == [(200, "POST")]

    @pytest.mark.asyncio
    async def test_raise_for_error_status_uses_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"code": "NOT_FOUND", "message": "Team missing"})

        async with _client(handler) as client:
            client.add_response_interceptor(raise_for_error_status)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams/t9")

        error = exc_info.value
        assert error.code == "NOT_FOUND"
        assert error.message == "Team missing"
        assert error.status == 404
        assert error.details["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_raise_for_error_status_without_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        async with _client(handler) as client:
            client.add_response_interceptor(raise_for_error_status)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        error = exc_info.value
        assert error.code == ErrorCode.HTTP_ERROR
        assert error.status == 503
        assert error.message == "HTTP 503: Service Unavailable"

    @pytest.mark.asyncio
    async def test_foreign_interceptor_error_is_wrapped(self):
        def broken(response: httpx.Response, config: RequestConfig) -> None:
            raise KeyError("missing")

        async with _client(lambda request: httpx.Response(418)) as client:
            client.add_response_interceptor(broken)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teapot")

        assert exc_info.value.code == ErrorCode.UNKNOWN_ERROR
        assert exc_info.value.status == 418

    @pytest.mark.asyncio
    async def test_http_error_is_not_network_error(self):
        """A server error stays an HTTP_ERROR with its status."""

        async with _client(lambda request: httpx.Response(500, json={})) as client:
            client.add_response_interceptor(raise_for_error_status)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert not exc_info.value.is_network_error
        assert exc_info.value.status == 500


class TestStreaming:
    """Tests for RestClient.stream()."""

    @pytest.mark.asyncio
    async def test_chunks_delivered_in_order(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            return httpx.Response(
                200,
                content=_parts(
                    b'{"content": "Hel',
                    b'lo"}\n{"content": " wor',
                    b'ld"}\nplain\n',
                    b"tail",
                ),
            )

        async with _client(handler) as client:
            await client.stream("/ai/coaching", {"prompt": "hi"}, received.append)

        assert received == [
            {"content": "Hello"},
            {"content": " world"},
            {"content": "plain"},
            {"content": "tail"},
        ]

    @pytest.mark.asyncio
    async def test_async_chunk_callback(self):
        received = []

        async def on_chunk(chunk):
            await asyncio.sleep(0)
            received.append(chunk)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b'{"content": "a"}\n{"content": "b"}\n')

        async with _client(handler) as client:
            await client.stream("/ai/coaching", {}, on_chunk)

        assert received == [{"content": "a"}, {"content": "b"}]

    @pytest.mark.asyncio
    async def test_error_status_raises_with_server_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"code": "RATE_LIMITED", "message": "slow down"})

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.stream("/ai/coaching", {})

        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.status == 429

    @pytest.mark.asyncio
    async def test_error_status_without_body_is_stream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.stream("/ai/coaching", {})

        assert exc_info.value.code == ErrorCode.STREAM_ERROR
        assert exc_info.value.message == "HTTP 502"

    @pytest.mark.asyncio
    async def test_transport_failure_is_stream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.stream("/ai/coaching", {})

        assert exc_info.value.code == ErrorCode.STREAM_ERROR

    @pytest.mark.asyncio
    async def test_callback_failure_is_stream_error(self):
        def on_chunk(chunk):
            raise ValueError("cannot render")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"line\n")

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.stream("/ai/coaching", {}, on_chunk)

        assert exc_info.value.code == ErrorCode.STREAM_ERROR
        assert "cannot render" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_failed_preparation_is_stream_error(self):
        outage = ConnectionResetError("identity provider unreachable")
        manager = TokenManager(FakeTokenProvider(error=outage))
        manager.set_token(make_token(-10))
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"line\n")

        async with _client(handler, token_manager=manager) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.stream("/ai/coaching", {}, received.append)

        assert exc_info.value.code == ErrorCode.STREAM_ERROR
        assert exc_info.value.__cause__ is outage
        assert received == []

    @pytest.mark.asyncio
    async def test_query_params_are_sent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"")

        async with _client(handler) as client:
            await client.stream("/analytics/user/u1", None, params={"range": "7d"})

        assert seen[0].method == "POST"
        assert seen[0].url.params["range"] == "7d"
        assert seen[0].content == b""

    @pytest.mark.asyncio
    async def test_cancellation_stops_delivery(self):
        cancel = asyncio.Event()
        received = []

        def on_chunk(chunk):
            received.append(chunk)
            cancel.set()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=_parts(
                    b'{"content": "first"}\n{"content": "same read"}\n',
                    b'{"content": "later"}\n',
                ),
            )

        async with _client(handler) as client:
            await client.stream("/ai/coaching", {}, on_chunk, cancel_event=cancel)

        assert received == [{"content": "first"}]

    @pytest.mark.asyncio
    async def test_cancellation_interrupts_pending_read(self):
        cancel = asyncio.Event()
        received = []

        async def slow_body() -> AsyncIterator[bytes]:
            yield b'{"content": "first"}\n'
            await asyncio.sleep(30)
            yield b'{"content": "never"}\n'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=slow_body())

        def on_chunk(chunk):
            received.append(chunk)
            asyncio.get_running_loop().call_later(0.01, cancel.set)

        async with _client(handler) as client:
            await asyncio.wait_for(
                client.stream("/ai/coaching", {}, on_chunk, cancel_event=cancel),
                timeout=5,
            )

        assert received == [{"content": "first"}]

    @pytest.mark.asyncio
    async def test_already_cancelled_delivers_nothing(self):
        cancel = asyncio.Event()
        cancel.set()
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"a\nb\n")

        async with _client(handler) as client:
            await client.stream("/ai/coaching", {}, received.append, cancel_event=cancel)

        assert received == []


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_returns_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/health"
            return httpx.Response(200, json={"status": "ok"})

        async with _client(handler) as client:
            assert await client.health() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_unreachable_backend(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.health()

        assert exc_info.value.code == ErrorCode.HEALTH_CHECK_FAILED

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with _client(lambda request: httpx.Response(200, text="OK")) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.health()

        assert exc_info.value.code == ErrorCode.HEALTH_CHECK_FAILED


class TestCreateRestClient:
    @pytest.mark.asyncio
    async def test_uses_settings_and_default_interceptors(self):
        settings = SwitchoverSettings(
            _env_file=None,
            rest_base_url="https://backend.test/api/v1/",
            request_timeout=5.0,
        )
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(400, json={"message": "invalid"})

        client = create_rest_client(
            settings,
            transport=httpx.MockTransport(handler),
            enable_tracing=False,
        )
        async with client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/teams")

        assert urls == ["https://backend.test/api/v1/teams"]
        assert exc_info.value.code == ErrorCode.HTTP_ERROR
        assert exc_info.value.message == "invalid"

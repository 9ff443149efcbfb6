"""
Unit tests for RestAdapter over a RestClient with httpx.MockTransport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from switchover.adapters import BackendResult, RestAdapter
from switchover.exceptions import ApiError, ErrorCode
from switchover.routing.models import BackendTarget
from switchover.transport import RestClient, raise_for_error_status


def _adapter(handler) -> RestAdapter:
    client = RestClient(
        "https://api.example.com/api/v1",
        transport=httpx.MockTransport(handler),
        enable_tracing=False,
    )
    return RestAdapter(client)


class TestExecute:
    @pytest.mark.asyncio
    async def test_maps_operation_to_endpoint(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "t-1", "name": "Platform"})

        adapter = _adapter(handler)
        result = await adapter.execute("getTeam", {"id": "t-1"})

        assert result == BackendResult(
            data={"id": "t-1", "name": "Platform"},
            backend=BackendTarget.REST,
            operation="getTeam",
        )
        assert requests[0].method == "GET"
        assert requests[0].url.path == "/api/v1/teams/t-1"

    @pytest.mark.asyncio
    async def test_write_sends_body(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((request.method, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True})

        await _adapter(handler).execute("updateTeam", {"id": "t-1", "name": "Blue"})

        assert bodies == [("PUT", {"name": "Blue"})]

    @pytest.mark.asyncio
    async def test_unmapped_operation_with_method_override(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=[])

        await _adapter(handler).execute("listBadges", method="GET")

        assert seen == [("GET", "/api/v1/listbadges")]

    @pytest.mark.asyncio
    async def test_empty_body_decodes_to_none(self):
        result = await _adapter(lambda r: httpx.Response(204)).execute("deleteTeam", {"id": 1})
        assert result.data is None

    @pytest.mark.asyncio
    async def test_non_2xx_is_http_error(self):
        adapter = _adapter(lambda r: httpx.Response(500, text="oops"))
        with pytest.raises(ApiError) as exc_info:
            await adapter.execute("getTeams")

        assert exc_info.value.code == ErrorCode.HTTP_ERROR
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_interceptor_error_propagates_unchanged(self):
        adapter = _adapter(lambda r: httpx.Response(409, json={"code": "CONFLICT", "message": "taken"}))
        adapter.client.add_response_interceptor(raise_for_error_status)

        with pytest.raises(ApiError) as exc_info:
            await adapter.execute("createTeam", {"name": "Blue"})

        assert exc_info.value.code == "CONFLICT"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        adapter = _adapter(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ApiError) as exc_info:
            await adapter.execute("getTeams")

        assert exc_info.value.code == ErrorCode.UNKNOWN_ERROR

    @pytest.mark.asyncio
    async def test_missing_placeholder_is_api_error_without_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        with pytest.raises(ApiError, match="'id'"):
            await _adapter(handler).execute("getTeam", {})
        assert calls == []

    def test_target(self):
        assert _adapter(lambda r: httpx.Response(200)).target is BackendTarget.REST


class TestStream:
    @pytest.mark.asyncio
    async def test_collects_and_forwards_chunks(self):
        forwarded = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/v1/ai/coaching"
            return httpx.Response(200, content=b'{"content": "a"}\nb\n')

        result = await _adapter(handler).stream(
            "generateAICoaching", {"prompt": "hi"}, forwarded.append
        )

        assert result.streaming is True
        assert result.backend is BackendTarget.REST
        assert result.chunks == [{"content": "a"}, {"content": "b"}]
        assert forwarded == result.chunks

    @pytest.mark.asyncio
    async def test_stream_error(self):
        adapter = _adapter(lambda r: httpx.Response(500))
        with pytest.raises(ApiError) as exc_info:
            await adapter.stream("generateAICoaching", {"prompt": "hi"})

        assert exc_info.value.code == ErrorCode.STREAM_ERROR

    @pytest.mark.asyncio
    async def test_query_fields_of_read_operation_are_kept(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=b'{"views": 3}\n')

        result = await _adapter(handler).stream("getUserAnalytics", {"id": "u1", "range": "7d"})

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/v1/analytics/user/u1"
        assert requests[0].url.params["range"] == "7d"
        assert result.chunks == [{"views": 3}]

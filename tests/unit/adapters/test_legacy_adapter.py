"""
Unit tests for LegacyAdapter and payload normalization.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from switchover.adapters import LegacyAdapter, normalize_payload
from switchover.exceptions import ApiError, ErrorCode, OperationNotSupportedError
from switchover.routing.models import BackendTarget
from switchover.testing import FakeLegacySdk


class TeamModel(BaseModel):
    id: str
    name: str


@dataclass
class TeamRecord:
    id: str
    name: str


class WithToDict:
    def to_dict(self):
        return {"kind": "custom"}


class TestNormalizePayload:
    def test_pydantic_model(self):
        assert normalize_payload(TeamModel(id="t1", name="Blue")) == {"id": "t1", "name": "Blue"}

    def test_dataclass(self):
        assert normalize_payload(TeamRecord("t1", "Blue")) == {"id": "t1", "name": "Blue"}

    def test_to_dict(self):
        assert normalize_payload(WithToDict()) == {"kind": "custom"}

    def test_list_is_normalized_recursively(self):
        assert normalize_payload([TeamRecord("t1", "Blue"), 3]) == [{"id": "t1", "name": "Blue"}, 3]

    def test_plain_values_pass_through(self):
        assert normalize_payload({"a": 1}) == {"a": 1}
        assert normalize_payload("text") == "text"
        assert normalize_payload(None) is None


class TestExecute:
    @pytest.mark.asyncio
    async def test_calls_mapped_sdk_method(self):
        sdk = FakeLegacySdk(generateCoaching=lambda data: {"reply": f"re: {data['prompt']}"})
        adapter = LegacyAdapter(sdk)

        result = await adapter.execute("generateAICoaching", {"prompt": "hi"})

        assert result.data == {"reply": "re: hi"}
        assert result.backend is BackendTarget.LEGACY
        assert sdk.calls == [("generateCoaching", {"prompt": "hi"})]

    @pytest.mark.asyncio
    async def test_async_sdk_method(self):
        async def get_teams(data):
            await asyncio.sleep(0)
            return [TeamModel(id="t1", name="Blue")]

        result = await LegacyAdapter(FakeLegacySdk(getTeams=get_teams)).execute("getTeams")

        assert result.data == [{"id": "t1", "name": "Blue"}]

    @pytest.mark.asyncio
    async def test_missing_method(self):
        adapter = LegacyAdapter(FakeLegacySdk())
        with pytest.raises(OperationNotSupportedError) as exc_info:
            await adapter.execute("generateAICoaching")

        assert exc_info.value.method_name == "generateCoaching"

    @pytest.mark.asyncio
    async def test_non_callable_attribute(self):
        class Sdk:
            getTeams = "not a method"

        with pytest.raises(OperationNotSupportedError):
            await LegacyAdapter(Sdk()).execute("getTeams")

    @pytest.mark.asyncio
    async def test_no_sdk_client(self):
        with pytest.raises(OperationNotSupportedError):
            await LegacyAdapter(None).execute("getTeams")

    @pytest.mark.asyncio
    async def test_sdk_failure_is_wrapped(self):
        def broken(data):
            raise RuntimeError("legacy exploded")

        with pytest.raises(ApiError) as exc_info:
            await LegacyAdapter(FakeLegacySdk(getTeams=broken)).execute("getTeams")

        assert exc_info.value.code == ErrorCode.UNKNOWN_ERROR
        assert exc_info.value.message == "legacy exploded"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_sdk_api_error_passes_through(self):
        original = ApiError(ErrorCode.HTTP_ERROR, "denied", 403)

        def denied(data):
            raise original

        with pytest.raises(ApiError) as exc_info:
            await LegacyAdapter(FakeLegacySdk(getTeams=denied)).execute("getTeams")

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(data):
            await asyncio.sleep(5)

        with pytest.raises(ApiError) as exc_info:
            await LegacyAdapter(FakeLegacySdk(getTeams=slow)).execute("getTeams", timeout=0.01)

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert "getTeams timed out" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, TimeoutError)


class TestStream:
    @pytest.mark.asyncio
    async def test_whole_payload_is_one_chunk(self):
        sdk = FakeLegacySdk(generateCoaching=lambda data: {"content": "full answer"})
        received = []

        result = await LegacyAdapter(sdk).stream("generateAICoaching", {}, received.append)

        assert received == [{"content": "full answer"}]
        assert result.chunks == [{"content": "full answer"}]
        assert result.streaming is True

    @pytest.mark.asyncio
    async def test_non_mapping_payload_is_wrapped(self):
        sdk = FakeLegacySdk(generateCoaching=lambda data: "plain answer")
        result = await LegacyAdapter(sdk).stream("generateAICoaching")

        assert result.chunks == [{"content": "plain answer"}]

    @pytest.mark.asyncio
    async def test_cancelled_before_delivery(self):
        cancel = asyncio.Event()
        cancel.set()
        received = []
        sdk = FakeLegacySdk(generateCoaching=lambda data: {"content": "x"})

        result = await LegacyAdapter(sdk).stream(
            "generateAICoaching", {}, received.append, cancel_event=cancel
        )

        assert received == []
        assert result.chunks == []

"""Unit tests for the backend gateway."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sidebar_sync import gateway as gateway_module
from sidebar_sync.gateway import (
    BackendGateway,
    close_gateway,
    get_gateway,
    init_gateway,
    iter_sse_events,
)
from sidebar_sync.services.event_bus import Channel


def _gateway(handler, **kwargs) -> BackendGateway:
    return BackendGateway(
        base_url="http://backend.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def _lines(*lines):
    for line in lines:
        yield line


class TestCall:
    @pytest.mark.asyncio
    async def test_posts_params_envelope(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"tabId": "t1"}})

        gateway = _gateway(handler)

        response = await gateway.recording_start("t1")
        await gateway.close()

        assert response.success is True
        assert response.data == {"tabId": "t1"}
        assert seen["path"] == "/rpc/recording.start"
        assert seen["body"] == {"params": {"tabId": "t1"}}

    @pytest.mark.asyncio
    async def test_refinement_message_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {}})

        gateway = _gateway(handler)

        await gateway.workflow_send_message("conv-1", "new tabs")
        await gateway.close()

        assert seen["path"] == "/rpc/workflow.sendMessage"
        assert seen["body"] == {"params": {"conversationId": "conv-1", "message": "new tabs"}}

    @pytest.mark.asyncio
    async def test_call_without_params_sends_empty_object(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": []})

        gateway = _gateway(handler)

        await gateway.notifications_get_all()
        await gateway.close()

        assert seen["body"] == {"params": {}}

    @pytest.mark.asyncio
    async def test_backend_failure_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "success": False,
                    "error": {
                        "code": "RECORDING_ACTIVE",
                        "message": "Recording already active in another tab",
                        "tabId": "t1",
                        "tabTitle": "Inbox",
                    },
                },
            )

        gateway = _gateway(handler)

        response = await gateway.recording_start("t2")
        await gateway.close()

        assert response.success is False
        assert response.error_code == "RECORDING_ACTIVE"
        assert response.error.details["tabTitle"] == "Inbox"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gateway = _gateway(handler)

        response = await gateway.chat_send("hello")
        await gateway.close()

        assert response.success is False
        assert response.error_code == "TIMEOUT"
        assert response.error_message == "chat.send timed out"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = _gateway(handler)

        response = await gateway.automations_get_all()
        await gateway.close()

        assert response.error_code == "TRANSPORT_ERROR"
        assert response.error_message == "connection refused"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        gateway = _gateway(handler)

        response = await gateway.automations_get_all()
        await gateway.close()

        assert response.error_code == "TRANSPORT_ERROR"
        assert response.error.details == {"status_code": 502}

    @pytest.mark.asyncio
    async def test_body_without_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"id": "a1"}])

        gateway = _gateway(handler)

        response = await gateway.automations_get_all()
        await gateway.close()

        assert response.success is False
        assert response.error_message == "Backend returned a malformed response"


class TestIterSseEvents:
    @pytest.mark.asyncio
    async def test_parses_named_events(self):
        events = [
            item
            async for item in iter_sse_events(
                _lines(
                    ": keep-alive",
                    "event: recording.action-captured",
                    'data: {"tabId": "t1", "actionCount": 1}',
                    "",
                    'data: {"plain": true}',
                    "",
                )
            )
        ]

        assert events == [
            ("recording.action-captured", {"tabId": "t1", "actionCount": 1}),
            ("message", {"plain": True}),
        ]

    @pytest.mark.asyncio
    async def test_multiline_data_joined(self):
        events = [
            item
            async for item in iter_sse_events(
                _lines("event: chat.messages-updated", 'data: {"messages":', "data: []}", "")
            )
        ]

        assert events == [("chat.messages-updated", {"messages": []})]

    @pytest.mark.asyncio
    async def test_invalid_json_skipped(self):
        events = [
            item
            async for item in iter_sse_events(
                _lines(
                    "event: execution.error",
                    "data: {broken",
                    "",
                    "event: execution.error",
                    'data: {"executionId": "exec-1"}',
                    "",
                )
            )
        ]

        assert events == [("execution.error", {"executionId": "exec-1"})]


class TestListen:
    @pytest.mark.asyncio
    async def test_publishes_stream_events(self, bus):
        body = (
            "event: recording.action-captured\n"
            'data: {"tabId": "t1", "actionCount": 1, "actionType": "click"}\n'
            "\n"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/events"
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=body.encode()
            )

        received = MagicMock(return_value=None)
        bus.subscribe(Channel.RECORDING_ACTION_CAPTURED, received, owner="test")
        gateway = _gateway(handler, reconnect_seconds=1.0)

        with patch.object(
            gateway_module.asyncio, "sleep", AsyncMock(side_effect=asyncio.CancelledError)
        ) as sleep:
            with pytest.raises(asyncio.CancelledError):
                await gateway.listen(bus)
        await gateway.close()

        received.assert_called_once()
        assert received.call_args.args[0].action_count == 1
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_backoff_doubles_up_to_cap(self, bus):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = _gateway(handler, reconnect_seconds=1.0, max_backoff_seconds=4.0)
        sleep = AsyncMock(side_effect=[None, None, None, asyncio.CancelledError()])

        with patch.object(gateway_module.asyncio, "sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await gateway.listen(bus)
        await gateway.close()

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_error_status_triggers_reconnect(self, bus):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        gateway = _gateway(handler, reconnect_seconds=0.5)
        sleep = AsyncMock(side_effect=asyncio.CancelledError)

        with patch.object(gateway_module.asyncio, "sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await gateway.listen(bus)
        await gateway.close()

        sleep.assert_awaited_once_with(0.5)


class TestGlobalGateway:
    @pytest.mark.asyncio
    async def test_lifecycle(self):
        with pytest.raises(RuntimeError):
            get_gateway()

        gateway = await init_gateway()
        try:
            assert get_gateway() is gateway
            assert await init_gateway() is gateway
            assert gateway.base_url == "http://backend.test"
        finally:
            await close_gateway()

        with pytest.raises(RuntimeError):
            get_gateway()

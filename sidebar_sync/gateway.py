"""Backend gateway: the single path from the sidebar core to the backend.

Request/response calls go out as `POST {backend_url}/rpc/{method}` and come
back as the `{success, data?, error?}` envelope. Push events arrive on a
server-sent-event stream at `GET {backend_url}/events` and are republished on
the event bus. Transport failures are folded into `success: false` responses
so stores only ever handle one failure shape.
"""

import asyncio
import json
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

import httpx
import structlog
from pydantic import ValidationError

from sidebar_sync.config import get_settings
from sidebar_sync.models.gateway import GatewayResponse

if TYPE_CHECKING:
    from sidebar_sync.services.event_bus import EventBus

logger = structlog.get_logger(__name__)

# Global gateway used by the runner
_gateway: Optional["BackendGateway"] = None


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, Any]]:
    """Parse server-sent-event lines into `(event name, decoded JSON data)` pairs.

    Blocks without an `event:` field are reported as "message". Blocks whose
    data is not valid JSON are logged and skipped.
    """
    event_name = "message"
    data_lines: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            if data_lines:
                data = "\n".join(data_lines)
                try:
                    yield event_name, json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("event_stream_decode_failed", channel=event_name)
            event_name = "message"
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)


class BackendGateway:
    """httpx-backed implementation of every backend call the sidebar makes."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        reconnect_seconds: Optional[float] = None,
        max_backoff_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.reconnect_seconds = (
            reconnect_seconds
            if reconnect_seconds is not None
            else settings.event_stream_reconnect_seconds
        )
        self.max_backoff_seconds = (
            max_backoff_seconds
            if max_backoff_seconds is not None
            else settings.event_stream_max_backoff_seconds
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def call(self, method: str, params: Optional[dict] = None) -> GatewayResponse:
        """Issue one request/response call.

        Args:
            method: Dotted backend method name (e.g. "recording.start")
            params: JSON-serializable call arguments

        Returns:
            The backend envelope, or a `success: false` response describing
            the transport failure
        """
        client = await self._get_client()
        try:
            response = await client.post(f"/rpc/{method}", json={"params": params or {}})
        except httpx.TimeoutException:
            logger.warning("gateway_call_timeout", method=method, timeout=self.timeout)
            return GatewayResponse.fail("TIMEOUT", f"{method} timed out")
        except httpx.HTTPError as e:
            logger.error(
                "gateway_call_failed",
                method=method,
                error=str(e),
                error_type=type(e).__name__,
            )
            return GatewayResponse.fail("TRANSPORT_ERROR", str(e) or "Backend unreachable")

        try:
            body = response.json()
        except ValueError:
            logger.error(
                "gateway_response_not_json",
                method=method,
                status_code=response.status_code,
            )
            return GatewayResponse.fail(
                "TRANSPORT_ERROR",
                "Backend returned an unreadable response",
                status_code=response.status_code,
            )

        if isinstance(body, dict) and "success" in body:
            try:
                return GatewayResponse.model_validate(body)
            except ValidationError as e:
                logger.error("gateway_envelope_invalid", method=method, error=str(e))

        logger.error(
            "gateway_response_malformed",
            method=method,
            status_code=response.status_code,
        )
        return GatewayResponse.fail(
            "TRANSPORT_ERROR",
            "Backend returned a malformed response",
            status_code=response.status_code,
        )

    # Notifications

    async def notifications_get_all(self, type: Optional[str] = None) -> GatewayResponse:
        return await self.call("notifications.getAll", {"type": type} if type else None)

    async def notifications_dismiss(self, notification_id: str) -> GatewayResponse:
        return await self.call("notifications.dismiss", {"id": notification_id})

    async def notifications_dismiss_all(self) -> GatewayResponse:
        return await self.call("notifications.dismissAll")

    # Patterns

    async def pattern_dismiss(self, pattern_id: str) -> GatewayResponse:
        return await self.call("pattern.dismiss", {"patternId": pattern_id})

    async def pattern_save_automation(self, payload: dict) -> GatewayResponse:
        return await self.call("pattern.saveAutomation", payload)

    async def pattern_cancel_execution(self, execution_id: str) -> GatewayResponse:
        return await self.call("pattern.cancelExecution", {"executionId": execution_id})

    async def pattern_start_continuation(self, payload: dict) -> GatewayResponse:
        return await self.call("pattern.startContinuation", payload)

    # Recording

    async def recording_start(self, tab_id: str) -> GatewayResponse:
        return await self.call("recording.start", {"tabId": tab_id})

    async def recording_stop(self) -> GatewayResponse:
        return await self.call("recording.stop")

    async def recording_save(self, payload: dict) -> GatewayResponse:
        return await self.call("recording.save", payload)

    async def recording_get_action_count(self) -> GatewayResponse:
        return await self.call("recording.getActionCount")

    # Automations

    async def automations_get_all(self) -> GatewayResponse:
        return await self.call("automations.getAll")

    async def automations_execute(self, automation_id: str) -> GatewayResponse:
        return await self.call("automations.execute", {"automationId": automation_id})

    async def automations_cancel(self) -> GatewayResponse:
        return await self.call("automations.cancel")

    async def automations_edit(self, payload: dict) -> GatewayResponse:
        return await self.call("automations.edit", payload)

    async def automations_delete(self, automation_id: str) -> GatewayResponse:
        return await self.call("automations.delete", {"automationId": automation_id})

    # Workflow refinement

    async def workflow_start_refinement(self, automation_id: str) -> GatewayResponse:
        return await self.call("workflow.startRefinement", {"automationId": automation_id})

    async def workflow_send_message(self, conversation_id: str, message: str) -> GatewayResponse:
        return await self.call(
            "workflow.sendMessage", {"conversationId": conversation_id, "message": message}
        )

    async def workflow_save_refined(self, conversation_id: str) -> GatewayResponse:
        return await self.call("workflow.saveRefined", {"conversationId": conversation_id})

    async def workflow_reset(self, conversation_id: str) -> GatewayResponse:
        return await self.call("workflow.reset", {"conversationId": conversation_id})

    # Chat

    async def chat_get_messages(self) -> GatewayResponse:
        return await self.call("chat.getMessages")

    async def chat_send(self, message: str) -> GatewayResponse:
        return await self.call("chat.send", {"message": message})

    async def chat_clear(self) -> GatewayResponse:
        return await self.call("chat.clear")

    # Tabs

    async def tabs_get_active_tab_info(self) -> GatewayResponse:
        return await self.call("tabs.getActiveTabInfo")

    async def tabs_switch(self, tab_id: str) -> GatewayResponse:
        return await self.call("tabs.switch", {"tabId": tab_id})

    # Push events

    async def listen(self, bus: "EventBus") -> None:
        """Forward push events to `bus` until cancelled.

        Reconnects with exponential backoff, capped at `max_backoff_seconds`.
        The backoff resets once a stream connects successfully.
        """
        client = await self._get_client()
        delay = self.reconnect_seconds

        while True:
            try:
                async with client.stream(
                    "GET",
                    "/events",
                    headers={"Accept": "text/event-stream"},
                    timeout=httpx.Timeout(self.timeout, read=None),
                ) as response:
                    response.raise_for_status()
                    logger.info("event_stream_connected", url=f"{self.base_url}/events")
                    delay = self.reconnect_seconds
                    async for channel, payload in iter_sse_events(response.aiter_lines()):
                        bus.publish(channel, payload)
                logger.info("event_stream_closed", reconnect_seconds=delay)
            except asyncio.CancelledError:
                logger.info("event_stream_cancelled")
                raise
            except httpx.HTTPError as e:
                logger.warning(
                    "event_stream_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    reconnect_seconds=delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_backoff_seconds)
                continue

            await asyncio.sleep(delay)


async def init_gateway() -> BackendGateway:
    """Create the global gateway.

    Returns:
        The gateway instance
    """
    global _gateway

    if _gateway is not None:
        return _gateway

    _gateway = BackendGateway()
    logger.info("gateway_initialized", base_url=_gateway.base_url)
    return _gateway


def get_gateway() -> BackendGateway:
    """Get the global gateway.

    Raises:
        RuntimeError: If the gateway is not initialized
    """
    if _gateway is None:
        raise RuntimeError("Gateway not initialized. Call init_gateway() first.")
    return _gateway


async def close_gateway() -> None:
    """Close the global gateway."""
    global _gateway

    if _gateway is not None:
        await _gateway.close()
        _gateway = None
        logger.info("gateway_closed")

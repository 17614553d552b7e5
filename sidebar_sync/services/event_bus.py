"""Typed publish/subscribe bus for backend push events.

Every channel is bound to a pydantic payload model. Payloads are validated
before dispatch; malformed payloads are logged and dropped so a bad event can
never reach (or crash) a store. Each owner holds at most one handler per
channel, which keeps a store from mutating its state twice for one event.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from sidebar_sync.models.execution import (
    ContinuationSuggestion,
    ExecutionCancelledEvent,
    ExecutionCompleteEvent,
    ExecutionErrorEvent,
    ExecutionProgressEvent,
)
from sidebar_sync.models.message import MessagesUpdatedEvent
from sidebar_sync.models.notification import Notification
from sidebar_sync.models.recording import ActionCapturedEvent, StatusChangedEvent

logger = structlog.get_logger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class Channel(str, Enum):
    """Named push-event channels emitted by the backend."""

    NOTIFICATION_RECEIVED = "notification.received"
    RECORDING_ACTION_CAPTURED = "recording.action-captured"
    RECORDING_STATUS_CHANGED = "recording.status-changed"
    EXECUTION_PROGRESS = "execution.progress"
    EXECUTION_COMPLETE = "execution.complete"
    EXECUTION_CANCELLED = "execution.cancelled"
    EXECUTION_ERROR = "execution.error"
    PATTERN_SUGGEST_CONTINUATION = "pattern.suggest-continuation"
    CHAT_MESSAGES_UPDATED = "chat.messages-updated"


PAYLOAD_MODELS: dict[Channel, type[BaseModel]] = {
    Channel.NOTIFICATION_RECEIVED: Notification,
    Channel.RECORDING_ACTION_CAPTURED: ActionCapturedEvent,
    Channel.RECORDING_STATUS_CHANGED: StatusChangedEvent,
    Channel.EXECUTION_PROGRESS: ExecutionProgressEvent,
    Channel.EXECUTION_COMPLETE: ExecutionCompleteEvent,
    Channel.EXECUTION_CANCELLED: ExecutionCancelledEvent,
    Channel.EXECUTION_ERROR: ExecutionErrorEvent,
    Channel.PATTERN_SUGGEST_CONTINUATION: ContinuationSuggestion,
    Channel.CHAT_MESSAGES_UPDATED: MessagesUpdatedEvent,
}


class EventBus:
    """Dispatches validated push events to per-owner handlers."""

    def __init__(self):
        self._handlers: dict[Channel, dict[str, Handler]] = {}
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, channel: Channel, handler: Handler, owner: str) -> Unsubscribe:
        """Register `handler` for `channel` on behalf of `owner`.

        A second subscription by the same owner replaces the first.

        Args:
            channel: Channel to listen on
            handler: Callable taking the validated payload model; may be async
            owner: Stable name of the subscribing store

        Returns:
            Callable that removes this subscription (no-op once replaced)
        """
        channel = Channel(channel)
        owners = self._handlers.setdefault(channel, {})
        if owner in owners:
            logger.debug("event_handler_replaced", channel=channel.value, owner=owner)
        owners[owner] = handler

        def unsubscribe() -> None:
            current = self._handlers.get(channel, {})
            if current.get(owner) is handler:
                del current[owner]
                logger.debug("event_handler_removed", channel=channel.value, owner=owner)

        return unsubscribe

    def unsubscribe_owner(self, owner: str) -> None:
        """Drop every handler registered by `owner`."""
        for owners in self._handlers.values():
            owners.pop(owner, None)

    def handler_count(self, channel: Channel) -> int:
        return len(self._handlers.get(Channel(channel), {}))

    def publish(self, channel: Union[Channel, str], payload: Any) -> int:
        """Validate `payload` and hand it to every handler on `channel`.

        Returns:
            Number of handlers the event was dispatched to
        """
        try:
            channel = Channel(channel)
        except ValueError:
            logger.warning("event_channel_unknown", channel=str(channel))
            return 0

        event = self._decode(channel, payload)
        if event is None:
            return 0

        handlers = list(self._handlers.get(channel, {}).items())
        for owner, handler in handlers:
            try:
                result = handler(event)
            except Exception:
                logger.exception("event_handler_failed", channel=channel.value, owner=owner)
                continue
            if inspect.isawaitable(result):
                self._track(channel, owner, result)
        return len(handlers)

    async def drain(self) -> None:
        """Wait until every handler task scheduled so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Drop all subscriptions."""
        self._handlers.clear()

    def _decode(self, channel: Channel, payload: Any) -> Optional[BaseModel]:
        model = PAYLOAD_MODELS[channel]
        if isinstance(payload, model):
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "event_payload_invalid",
                channel=channel.value,
                error_count=e.error_count(),
                errors=e.errors(include_url=False, include_input=False),
            )
            return None

    def _track(self, channel: Channel, owner: str, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error("event_handler_no_loop", channel=channel.value, owner=owner)
            return
        task = asyncio.ensure_future(awaitable, loop=loop)

        def done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(
                    "event_handler_failed",
                    channel=channel.value,
                    owner=owner,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

        self._tasks.add(task)
        task.add_done_callback(done)

"""Conversation assembly: merged chat and pattern messages, grouped into turns."""

import time
from typing import Callable, Optional, Sequence, Union
from urllib.parse import urlparse
from uuid import uuid4

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.execution import (
    ExecutionCancelledEvent,
    ExecutionCompleteEvent,
    ExecutionErrorEvent,
    PatternContext,
)
from sidebar_sync.models.message import (
    ConversationTurn,
    ConversationView,
    Message,
    MessageRole,
    MessagesUpdatedEvent,
)
from sidebar_sync.models.pattern import Pattern, PatternRef, PatternType
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe

logger = structlog.get_logger(__name__)

# Hostnames shown in a navigation pattern message
MAX_NAVIGATION_HOSTS = 5


def now_ms() -> int:
    return int(time.time() * 1000)


def pattern_message_id(notification_id: str) -> str:
    return f"pattern-{notification_id}"


def merge_messages(chat: Sequence[Message], pattern: Sequence[Message]) -> list[Message]:
    """Merge both sources by timestamp.

    The sort is stable, so ties keep chat messages ahead of pattern messages
    and each source's own insertion order.
    """
    return sorted([*chat, *pattern], key=lambda m: m.timestamp)


def assemble_turns(messages: Sequence[Message]) -> tuple[ConversationTurn, ...]:
    """Group a merged message list into turns.

    A user message opens a turn and claims the very next message when that
    one is from the assistant. An assistant message nobody claimed stands
    alone. System messages are skipped, but still sit between their
    neighbours: a user message followed by a system message is not paired.
    """
    turns = []
    i = 0
    while i < len(messages):
        message = messages[i]
        if message.role == MessageRole.SYSTEM:
            i += 1
            continue
        if message.role == MessageRole.USER:
            following = messages[i + 1] if i + 1 < len(messages) else None
            if following is not None and following.role == MessageRole.ASSISTANT:
                turns.append(ConversationTurn(user=message, assistant=following))
                i += 2
                continue
            turns.append(ConversationTurn(user=message))
        else:
            turns.append(ConversationTurn(assistant=message))
        i += 1
    return tuple(turns)


def _hostname(url: str) -> str:
    host = urlparse(url).hostname
    if not host:
        raise ValueError(f"not an absolute URL: {url}")
    return host


def describe_pattern(pattern: Pattern) -> str:
    """Conversational text offering to save `pattern` as an automation."""
    if pattern.intent_summary_detailed:
        return (
            f"Hey! I noticed you've been {pattern.intent_summary_detailed.lower()}. "
            "Want to save this as an automation?"
        )

    data = pattern.pattern_data
    count = pattern.occurrence_count

    if pattern.type == PatternType.NAVIGATION and data.get("sequence"):
        hosts = []
        for step in data["sequence"][:MAX_NAVIGATION_HOSTS]:
            url = step.get("url", "") if isinstance(step, dict) else str(step)
            try:
                hosts.append(_hostname(url).removeprefix("www."))
            except ValueError:
                hosts.append(url)
        return (
            f"I noticed you've been navigating {' → '.join(hosts)} {count} times recently. "
            "This looks like a workflow you repeat often. Would you like me to convert "
            "this into an automation to save time?"
        )

    if pattern.type == PatternType.FORM and data.get("domain"):
        field_count = len(data.get("fields") or [])
        return (
            f"I've observed you filling out the {data['domain']} form ({field_count} fields) "
            f"{count} times. I can help automate this repetitive task. "
            "Would you like to save this as an automation?"
        )

    label = "copy/paste" if pattern.type == PatternType.COPY_PASTE else pattern.type.value
    return (
        f"I detected a {label} pattern that you've repeated {count} times with "
        f"{pattern.confidence:.0f}% confidence. Would you like to convert this into "
        "an automation?"
    )


def _describe_context(context: PatternContext) -> str:
    if context.type == PatternType.NAVIGATION.value:
        url_count = context.url_count or 0
        try:
            first = _hostname(context.first_url) if context.first_url else "pages"
            last = _hostname(context.last_url) if context.last_url else None
        except ValueError:
            return " — automated navigation workflow"
        if url_count == 1:
            return f" — visited {first}"
        if url_count == 2:
            return f" — navigated between {first} and {last or 'another page'}"
        return f" — automated {url_count}-step navigation workflow"

    if context.type == PatternType.FORM.value:
        field_count = context.field_count or 0
        plural = "s" if field_count > 1 else ""
        return f" — filled {field_count} field{plural} on {context.domain or 'form'}"
    return ""


def describe_completion(event: ExecutionCompleteEvent) -> str:
    """Chat text for a finished continuation run."""
    if not event.success:
        return f"❌ Execution failed: {event.error or 'Unknown error'}"

    items = event.items_processed or 0
    content = f"✅ Done! Completed {items} iteration{'s' if items > 1 else ''} successfully"
    if event.pattern_context is not None:
        content += _describe_context(event.pattern_context)
    if event.steps_executed:
        content += f". Total steps: {event.steps_executed}."
    else:
        content += "."
    return content


ExecutionEnd = Union[ExecutionCompleteEvent, ExecutionCancelledEvent, ExecutionErrorEvent]


class ConversationAssembler:
    """Two message sources and the turn projection over them.

    The direct chat source is the backend's latest snapshot. The pattern
    source holds messages generated on the client: pattern offers, action
    confirmations and continuation outcomes. The processed set is keyed by
    notification id and grows only on irreversible pattern actions.
    """

    OWNER = "conversation"

    def __init__(
        self,
        gateway: BackendGateway,
        clock: Callable[[], int] = now_ms,
    ):
        self.gateway = gateway
        self.clock = clock
        self.chat_messages: list[Message] = []
        self.pattern_messages: list[Message] = []
        self.processed: set[str] = set()
        self.pending = False
        self._unsubscribers: list[Unsubscribe] = []

    def subscribe(self, bus: EventBus) -> None:
        self.unsubscribe()
        self._unsubscribers = [
            bus.subscribe(
                Channel.CHAT_MESSAGES_UPDATED, self.on_messages_updated, owner=self.OWNER
            ),
            bus.subscribe(Channel.EXECUTION_COMPLETE, self.on_execution_end, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_CANCELLED, self.on_execution_end, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_ERROR, self.on_execution_end, owner=self.OWNER),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def messages(self) -> list[Message]:
        return merge_messages(self.chat_messages, self.pattern_messages)

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return assemble_turns(self.messages)

    def view(self, pending: Optional[bool] = None) -> ConversationView:
        """Turns plus the loading flag.

        Loading shows only while a reply is pending and the newest message is
        the user's.
        """
        if pending is None:
            pending = self.pending
        messages = self.messages
        waiting = bool(messages) and messages[-1].role == MessageRole.USER
        return ConversationView(turns=assemble_turns(messages), show_loading=pending and waiting)

    # Direct chat

    async def load(self) -> ActionResult[list[Message]]:
        response = await self.gateway.chat_get_messages()
        if not response.success:
            logger.error(
                "chat_load_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        try:
            snapshot = MessagesUpdatedEvent.model_validate({"messages": response.data or []})
        except ValidationError as e:
            logger.warning("chat_messages_malformed", error_count=e.error_count())
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.DECODE,
                    code="MALFORMED_RESPONSE",
                    message="Chat history could not be read",
                )
            )

        self.on_messages_updated(snapshot)
        return ActionResult.success(list(self.chat_messages))

    def on_messages_updated(self, event: MessagesUpdatedEvent) -> None:
        """Replace the direct chat source with the pushed snapshot."""
        self.chat_messages = list(event.messages)
        last = self.chat_messages[-1] if self.chat_messages else None
        if self.pending and last is not None and last.role != MessageRole.USER:
            self.pending = False
        logger.debug("chat_messages_updated", count=len(self.chat_messages), pending=self.pending)

    async def send(self, text: str) -> ActionResult[None]:
        message = text.strip()
        if not message:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="VALIDATION_ERROR",
                    message="Message is required",
                    context={"field": "message"},
                )
            )

        self.pending = True
        response = await self.gateway.chat_send(message)
        if not response.success:
            self.pending = False
            logger.error(
                "chat_send_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)
        return ActionResult.success()

    async def clear(self) -> ActionResult[None]:
        """Clear both sources; the processed set is left as it is."""
        response = await self.gateway.chat_clear()
        if not response.success:
            logger.error(
                "chat_clear_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self.chat_messages = []
        self.pattern_messages = []
        self.pending = False
        logger.info("chat_cleared")
        return ActionResult.success()

    # Pattern source

    def add_assistant_message(self, content: str, prefix: str = "assistant") -> Message:
        message = Message(
            id=f"{prefix}-{uuid4()}",
            role=MessageRole.ASSISTANT,
            content=content,
            timestamp=self.clock(),
        )
        self.pattern_messages.append(message)
        return message

    def is_processed(self, notification_id: str) -> bool:
        return notification_id in self.processed

    def open_pattern(self, notification_id: str, pattern: Pattern) -> Optional[Message]:
        """Show the offer message for a pattern notification.

        Returns:
            The (possibly already shown) message, or None once the notification
            has been acted on for good
        """
        if notification_id in self.processed:
            logger.info("pattern_message_already_processed", notification_id=notification_id)
            return None

        message_id = pattern_message_id(notification_id)
        for existing in self.pattern_messages:
            if existing.id == message_id:
                return existing

        message = Message(
            id=message_id,
            role=MessageRole.ASSISTANT,
            content=describe_pattern(pattern),
            timestamp=self.clock(),
            pattern_ref=PatternRef(notification_id=notification_id, pattern=pattern),
        )
        self.pattern_messages.append(message)
        logger.info(
            "pattern_message_opened",
            notification_id=notification_id,
            pattern_id=pattern.id,
        )
        return message

    def soft_dismiss(self, notification_id: str) -> None:
        """Hide the offer ("not now"); it can be opened again later."""
        message_id = pattern_message_id(notification_id)
        self.pattern_messages = [m for m in self.pattern_messages if m.id != message_id]
        logger.info("pattern_message_hidden", notification_id=notification_id)

    def mark_processed(self, notification_id: str) -> None:
        """Record an irreversible action on the notification and drop its offer."""
        self.processed.add(notification_id)
        self.soft_dismiss(notification_id)

    # Continuation outcomes

    def on_execution_end(self, event: ExecutionEnd) -> None:
        """Post the outcome of a continuation run (library runs have no chat message)."""
        if event.automation_id is not None:
            return

        if isinstance(event, ExecutionCompleteEvent):
            prefix = "execution-complete" if event.success else "execution-error"
            content = describe_completion(event)
        elif isinstance(event, ExecutionCancelledEvent):
            prefix = "execution-cancelled"
            content = f"⏹️ Execution cancelled. Stopped at step {event.stopped_at}."
        else:
            prefix = "execution-error"
            content = f"❌ Execution failed: {event.error}"

        self.add_assistant_message(content, prefix=prefix)
        logger.info(
            "continuation_outcome_posted",
            execution_id=event.execution_id,
            outcome=prefix,
        )

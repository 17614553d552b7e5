"""Proactive continuation suggestions and the progress of the runs they start."""

from typing import Optional, Union

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.execution import (
    ContinuationSuggestion,
    ExecutionCancelledEvent,
    ExecutionCompleteEvent,
    ExecutionErrorEvent,
    ExecutionProgressEvent,
)
from sidebar_sync.models.requests import ContinuationRequest
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.conversation_service import ConversationAssembler
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe

logger = structlog.get_logger(__name__)

START_MESSAGE = "🚀 Starting automation... I'll keep you posted on the progress."


class ContinuationSuggestions:
    """Offer to continue a pattern the user is repeating right now.

    At most one suggestion is live; a newer one replaces it. Declining only
    hides the offer, the pattern itself is not dismissed. Progress of a
    running continuation is tracked by execution id and cleared only by the
    complete, cancelled or error events.
    """

    OWNER = "continuation"

    def __init__(self, gateway: BackendGateway, conversation: ConversationAssembler):
        self.gateway = gateway
        self.conversation = conversation
        self.suggestion: Optional[ContinuationSuggestion] = None
        self.progress: Optional[ExecutionProgressEvent] = None
        self.starting = False
        self._unsubscribers: list[Unsubscribe] = []

    def subscribe(self, bus: EventBus) -> None:
        self.unsubscribe()
        self._unsubscribers = [
            bus.subscribe(
                Channel.PATTERN_SUGGEST_CONTINUATION, self.on_suggestion, owner=self.OWNER
            ),
            bus.subscribe(Channel.EXECUTION_PROGRESS, self.on_progress, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_COMPLETE, self.on_execution_end, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_CANCELLED, self.on_execution_end, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_ERROR, self.on_execution_end, owner=self.OWNER),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def on_suggestion(self, suggestion: ContinuationSuggestion) -> None:
        self.suggestion = suggestion
        logger.info(
            "continuation_suggested",
            pattern_id=suggestion.pattern_id,
            estimated_items=suggestion.estimated_items,
            match_count=suggestion.match_count,
        )

    def prefill(self) -> Optional[int]:
        """Default item count for the custom-count input."""
        return self.suggestion.estimated_items if self.suggestion is not None else None

    async def start(self, item_count: Optional[int] = None) -> ActionResult[None]:
        """Continue the suggested pattern for `item_count` items.

        Args:
            item_count: Items to process; defaults to the estimate

        Returns:
            Success once the backend accepted the run. Out-of-range counts are
            rejected before any call.
        """
        if self.suggestion is None:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="NO_SUGGESTION",
                    message="There is no suggestion to continue",
                )
            )

        if item_count is None:
            item_count = self.suggestion.estimated_items
        try:
            request = ContinuationRequest(
                pattern_id=self.suggestion.pattern_id, item_count=item_count
            )
        except ValidationError as e:
            logger.info("continuation_request_invalid", item_count=item_count)
            return ActionResult.invalid(e)

        self.starting = True
        self.conversation.add_assistant_message(START_MESSAGE, prefix="execution-start")
        try:
            response = await self.gateway.pattern_start_continuation(request.to_payload())
        finally:
            self.starting = False

        if not response.success:
            logger.error(
                "continuation_start_failed",
                pattern_id=request.pattern_id,
                item_count=request.item_count,
                error_code=response.error_code,
                error=response.error_message,
            )
            self.conversation.add_assistant_message(
                f"❌ {response.error_message}", prefix="error"
            )
            return ActionResult.rejected(response)

        logger.info(
            "continuation_started",
            pattern_id=request.pattern_id,
            item_count=request.item_count,
        )
        self.suggestion = None
        return ActionResult.success()

    def decline(self) -> None:
        """Hide the offer ("No thanks") without dismissing the pattern."""
        if self.suggestion is not None:
            logger.info("continuation_declined", pattern_id=self.suggestion.pattern_id)
        self.suggestion = None

    def on_progress(self, event: ExecutionProgressEvent) -> None:
        if event.execution_id is None or event.automation_id is not None:
            return
        current = self.progress
        if (
            current is not None
            and current.execution_id == event.execution_id
            and event.current < current.current
        ):
            logger.debug(
                "continuation_progress_out_of_order",
                execution_id=event.execution_id,
                step=event.current,
                latest_step=current.current,
            )
            return
        self.progress = event

    def on_execution_end(
        self,
        event: Union[ExecutionCompleteEvent, ExecutionCancelledEvent, ExecutionErrorEvent],
    ) -> None:
        if event.automation_id is not None:
            return
        if self.progress is not None and event.execution_id not in (
            None,
            self.progress.execution_id,
        ):
            logger.debug("continuation_end_other_execution", execution_id=event.execution_id)
            return
        self.progress = None

    async def cancel_execution(self) -> ActionResult[None]:
        """Ask the backend to stop the running continuation.

        Progress stays visible until the cancelled event arrives.
        """
        if self.progress is None or self.progress.execution_id is None:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="NO_EXECUTION",
                    message="No continuation is running",
                )
            )

        execution_id = self.progress.execution_id
        response = await self.gateway.pattern_cancel_execution(execution_id)
        if not response.success:
            logger.error(
                "continuation_cancel_failed",
                execution_id=execution_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("continuation_cancel_requested", execution_id=execution_id)
        return ActionResult.success()

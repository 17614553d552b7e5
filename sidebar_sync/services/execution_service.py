"""Tracking of in-flight automation executions and their progress."""

from typing import Awaitable, Callable, Optional, Union

import structlog

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.execution import (
    ExecutionCancelledEvent,
    ExecutionCompleteEvent,
    ExecutionErrorEvent,
    ExecutionProgress,
    ExecutionProgressEvent,
)
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe

logger = structlog.get_logger(__name__)

EndEvent = Union[ExecutionCompleteEvent, ExecutionCancelledEvent, ExecutionErrorEvent]


class AutomationExecutionTracker:
    """Owns the `executing` set and the per-automation progress map.

    Only push events end an execution. `cancel()` asks the backend to stop
    but leaves local state alone, so the tracker never shows idle while the
    backend still considers the run live. Progress for an automation that is
    not executing is treated as stale and ignored.
    """

    OWNER = "executions"

    def __init__(
        self,
        gateway: BackendGateway,
        reload: Optional[Callable[[], Awaitable[object]]] = None,
    ):
        self.gateway = gateway
        self.reload = reload
        self.executing: set[str] = set()
        self.progress: dict[str, ExecutionProgress] = {}
        self._unsubscribers: list[Unsubscribe] = []

    def is_executing(self, automation_id: str) -> bool:
        return automation_id in self.executing

    def subscribe(self, bus: EventBus) -> None:
        self.unsubscribe()
        self._unsubscribers = [
            bus.subscribe(Channel.EXECUTION_PROGRESS, self.on_progress, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_COMPLETE, self.on_complete, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_CANCELLED, self.on_complete, owner=self.OWNER),
            bus.subscribe(Channel.EXECUTION_ERROR, self.on_complete, owner=self.OWNER),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def execute(self, automation_id: str) -> ActionResult[None]:
        """Run an automation.

        The id joins `executing` before the backend is called. A failed call
        takes it (and any progress) back out; a successful one reloads the
        automation list for the new execution count.
        """
        if automation_id in self.executing:
            logger.info("automation_execution_already_running", automation_id=automation_id)
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.CONFLICT,
                    code="EXECUTION_ACTIVE",
                    message="Automation is already running",
                    context={"automationId": automation_id},
                )
            )

        self.executing.add(automation_id)
        logger.info("automation_execution_started", automation_id=automation_id)

        response = await self.gateway.automations_execute(automation_id)
        if not response.success:
            self.executing.discard(automation_id)
            self.progress.pop(automation_id, None)
            logger.error(
                "automation_execution_failed",
                automation_id=automation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("automation_execution_accepted", automation_id=automation_id)
        if self.reload is not None:
            await self.reload()
        return ActionResult.success()

    async def cancel(self) -> ActionResult[None]:
        """Ask the backend to stop the running automation.

        Completion or cancellation events clear local state, not this call.
        """
        response = await self.gateway.automations_cancel()
        if not response.success:
            logger.error(
                "automation_cancel_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("automation_cancel_requested", executing=sorted(self.executing))
        return ActionResult.success()

    def on_progress(self, event: ExecutionProgressEvent) -> None:
        """Upsert progress for an executing automation."""
        automation_id = event.automation_id
        if automation_id is None:
            return
        if automation_id not in self.executing:
            logger.debug("execution_progress_stale", automation_id=automation_id)
            return

        current = self.progress.get(automation_id)
        if current is not None and event.current < current.current_step:
            logger.debug(
                "execution_progress_out_of_order",
                automation_id=automation_id,
                step=event.current,
                latest_step=current.current_step,
            )
            return

        self.progress[automation_id] = event.to_progress()
        logger.debug(
            "execution_progress",
            automation_id=automation_id,
            step=event.current,
            total=event.total,
            screenshot=event.screenshot,
        )

    def on_complete(self, event: EndEvent) -> Optional[Awaitable[object]]:
        """End an execution (success, failure or cancellation) and reload.

        Local state is cleared synchronously; the returned reload is awaited
        by the event bus.
        """
        automation_id = event.automation_id
        if automation_id is None:
            return None

        self.executing.discard(automation_id)
        self.progress.pop(automation_id, None)

        if isinstance(event, ExecutionCompleteEvent) and event.success:
            logger.info(
                "automation_execution_completed",
                automation_id=automation_id,
                steps_executed=event.steps_executed,
            )
        else:
            logger.warning(
                "automation_execution_ended",
                automation_id=automation_id,
                event_type=type(event).__name__,
                error=getattr(event, "error", None),
            )

        if self.reload is None:
            return None
        return self.reload()

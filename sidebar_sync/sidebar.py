"""Composition root: every store wired to one gateway and one event bus."""

import asyncio
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.automation import Automation, ProposedChanges, RefinementMessage
from sidebar_sync.models.execution import (
    ContinuationSuggestion,
    ExecutionProgress,
    ExecutionProgressEvent,
)
from sidebar_sync.models.message import ConversationView, Message
from sidebar_sync.models.notification import Notification
from sidebar_sync.models.pattern import Pattern
from sidebar_sync.models.recording import (
    RecordingConflict,
    RecordingPreview,
    RecordingSession,
)
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.automation_service import AutomationLibrary
from sidebar_sync.services.conversation_service import ConversationAssembler
from sidebar_sync.services.event_bus import EventBus
from sidebar_sync.services.execution_service import AutomationExecutionTracker
from sidebar_sync.services.notification_service import NotificationStore
from sidebar_sync.services.pattern_service import PatternQueue, decode_pattern
from sidebar_sync.services.proactive_service import ContinuationSuggestions
from sidebar_sync.services.recording_service import RecordingStateMachine
from sidebar_sync.services.refinement_service import WorkflowRefinement
from sidebar_sync.services.scheduler_service import ActiveTabPoller

logger = structlog.get_logger(__name__)


class SidebarView(BaseModel):
    """Immutable, render-ready snapshot of the whole sidebar."""

    model_config = ConfigDict(frozen=True)

    notifications: tuple[Notification, ...] = ()
    unread_count: int = 0
    patterns: tuple[Pattern, ...] = ()
    automations: tuple[Automation, ...] = ()
    automations_loading: bool = False
    refining: Optional[str] = None
    refinement_messages: tuple[RefinementMessage, ...] = ()
    refinement_complete: bool = False
    refinement_changes: Optional[ProposedChanges] = None
    executing: frozenset[str] = frozenset()
    progress: dict[str, ExecutionProgress] = {}
    recording: RecordingSession = RecordingSession()
    recording_conflict: Optional[RecordingConflict] = None
    recording_decision_pending: bool = False
    recording_preview: Optional[RecordingPreview] = None
    conversation: ConversationView = ConversationView()
    suggestion: Optional[ContinuationSuggestion] = None
    continuation_progress: Optional[ExecutionProgressEvent] = None
    current_tab_id: Optional[str] = None
    is_on_recording_tab: bool = False


class SidebarModel:
    """Builds the stores around an injected gateway and keeps them in sync.

    `mount()` subscribes every store, loads initial state and starts the
    active-tab poller; `unmount()` undoes all of it.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        bus: Optional[EventBus] = None,
        poll_interval: Optional[float] = None,
    ):
        self.gateway = gateway
        self.bus = bus or EventBus()
        self.notifications = NotificationStore(gateway)
        self.patterns = PatternQueue(gateway)
        self.automations = AutomationLibrary(gateway)
        self.refinement = WorkflowRefinement(gateway, self.automations)
        self.executions = AutomationExecutionTracker(gateway, reload=self.automations.load)
        self.recording = RecordingStateMachine(gateway, on_saved=self.automations.load)
        self.conversation = ConversationAssembler(gateway)
        self.continuation = ContinuationSuggestions(gateway, self.conversation)
        self.poller = ActiveTabPoller(gateway, interval=poll_interval)
        self.mounted = False

    @property
    def _stores(self) -> tuple:
        return (
            self.notifications,
            self.patterns,
            self.executions,
            self.recording,
            self.conversation,
            self.continuation,
        )

    async def mount(self, start_poller: bool = True) -> None:
        """Subscribe all stores and run the initial loads."""
        for store in self._stores:
            store.subscribe(self.bus)

        results = await asyncio.gather(
            self.notifications.load(),
            self.patterns.load(),
            self.automations.load(),
            self.conversation.load(),
        )
        failed = sum(1 for result in results if not result.ok)

        if start_poller:
            self.poller.start()
        self.mounted = True
        logger.info("sidebar_mounted", failed_loads=failed)

    async def unmount(self) -> None:
        """Drop subscriptions, stop polling and let pending handlers finish."""
        for store in self._stores:
            store.unsubscribe()
        await self.poller.stop()
        await self.bus.drain()
        self.mounted = False
        logger.info("sidebar_unmounted")

    @property
    def is_on_recording_tab(self) -> bool:
        session = self.recording.session
        return session.is_recording and self.poller.current_tab_id == session.tab_id

    async def toggle_recording(self) -> ActionResult:
        """Record button: guarded stop on the recording tab, start anywhere else."""
        if self.is_on_recording_tab:
            return await self.recording.stop()

        tab_id = self.poller.current_tab_id
        if tab_id is None:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="NO_ACTIVE_TAB",
                    message="Open a tab to start recording",
                )
            )
        return await self.recording.start(tab_id)

    def view(self) -> SidebarView:
        return SidebarView(
            notifications=tuple(self.notifications.notifications),
            unread_count=self.notifications.unread_count,
            patterns=tuple(self.patterns.patterns),
            automations=tuple(self.automations.automations),
            automations_loading=self.automations.loading,
            refining=self.automations.refining,
            refinement_messages=tuple(self.refinement.messages),
            refinement_complete=self.refinement.is_complete,
            refinement_changes=self.refinement.proposed_changes,
            executing=frozenset(self.executions.executing),
            progress=dict(self.executions.progress),
            recording=self.recording.session,
            recording_conflict=self.recording.conflict,
            recording_decision_pending=self.recording.decision_pending,
            recording_preview=self.recording.preview,
            conversation=self.conversation.view(),
            suggestion=self.continuation.suggestion,
            continuation_progress=self.continuation.progress,
            current_tab_id=self.poller.current_tab_id,
            is_on_recording_tab=self.is_on_recording_tab,
        )

    # Chat-side pattern actions

    def _pattern_for(self, notification_id: str) -> Optional[Pattern]:
        for message in self.conversation.pattern_messages:
            if message.pattern_ref and message.pattern_ref.notification_id == notification_id:
                return message.pattern_ref.pattern
        for entry in self.patterns.entries:
            if entry.notification_id == notification_id:
                return entry.pattern
        notification = self.notifications.get(notification_id)
        if notification is not None:
            return decode_pattern(notification.data)
        return None

    def open_pattern_notification(self, notification_id: str) -> Optional[Message]:
        """Show a pattern notification in chat as an offer message."""
        pattern = self._pattern_for(notification_id)
        if pattern is None:
            logger.warning("pattern_notification_not_found", notification_id=notification_id)
            return None
        return self.conversation.open_pattern(notification_id, pattern)

    async def save_pattern_from_chat(
        self,
        notification_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> ActionResult[str]:
        """Save the pattern behind a chat offer and close the offer for good."""
        pattern = self._pattern_for(notification_id)
        if pattern is None:
            return _pattern_missing(notification_id)

        result = await self.patterns.convert_to_automation(pattern.id, name, description)
        if not result.ok:
            self.conversation.add_assistant_message(f"❌ {result.error.message}", prefix="error")
            return result

        await self.notifications.dismiss(notification_id)
        self.conversation.mark_processed(notification_id)
        self.conversation.add_assistant_message(
            f"Great! Saved as '{name.strip()}'. Find it in your Automation Library.",
            prefix="success",
        )
        await self.automations.load()
        return result

    async def dismiss_pattern_from_chat(self, notification_id: str) -> ActionResult[None]:
        """Dismiss the pattern behind a chat offer; it will not be suggested again."""
        pattern = self._pattern_for(notification_id)
        if pattern is None:
            return _pattern_missing(notification_id)

        result = await self.patterns.dismiss(pattern.id)
        if not result.ok:
            self.conversation.add_assistant_message("❌ Failed to dismiss pattern", prefix="error")
            return result

        await self.notifications.dismiss(notification_id)
        self.conversation.mark_processed(notification_id)
        self.conversation.add_assistant_message(
            "No problem! I won't suggest this again.", prefix="success"
        )
        return result


def _pattern_missing(notification_id: str) -> ActionResult:
    return ActionResult.failure(
        ActionError(
            kind=ErrorKind.VALIDATION,
            code="PATTERN_NOT_FOUND",
            message="This pattern is no longer available",
            context={"notificationId": notification_id},
        )
    )

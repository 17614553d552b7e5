"""Recording session state machine.

The backend allows one recording system-wide. Starting while another tab is
recording is rejected with RECORDING_ACTIVE; the conflict is handed back to
the caller and nothing here switches tabs or force-stops the other session
unless the user asks for it. Stopping is guarded by the recorder's action
count: an empty recording needs an explicit continue-or-discard decision.
"""

from typing import Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.recording import (
    TERMINAL_STATUSES,
    ActionCapturedEvent,
    RecordedAction,
    RecordingConflict,
    RecordingPreview,
    RecordingSession,
    RecordingStatus,
    StatusChangedEvent,
    StopOutcome,
)
from sidebar_sync.models.requests import SaveRecordingRequest
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe

logger = structlog.get_logger(__name__)


class RecordingStateMachine:
    """Single writer of the client's RecordingSession."""

    OWNER = "recording"

    def __init__(
        self,
        gateway: BackendGateway,
        on_saved: Optional[Callable[[], Awaitable[object]]] = None,
    ):
        self.gateway = gateway
        self.on_saved = on_saved
        self.session = RecordingSession()
        self.preview: Optional[RecordingPreview] = None
        self.conflict: Optional[RecordingConflict] = None
        self.decision_pending = False
        self.status_message: Optional[str] = None
        self._unsubscribers: list[Unsubscribe] = []

    def subscribe(self, bus: EventBus) -> None:
        self.unsubscribe()
        self._unsubscribers = [
            bus.subscribe(
                Channel.RECORDING_ACTION_CAPTURED, self.on_action_captured, owner=self.OWNER
            ),
            bus.subscribe(
                Channel.RECORDING_STATUS_CHANGED, self.on_status_changed, owner=self.OWNER
            ),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def start(self, tab_id: str) -> ActionResult[RecordingSession]:
        """Start recording on `tab_id`.

        Returns:
            The new session, or the error. A RECORDING_ACTIVE conflict leaves
            the current session untouched and carries the busy tab's id and
            title in `error.context` (also kept on `self.conflict`).
        """
        response = await self.gateway.recording_start(tab_id)
        if not response.success:
            result = ActionResult.rejected(response)
            if result.is_conflict:
                try:
                    self.conflict = RecordingConflict.model_validate(result.error.context)
                except ValidationError:
                    logger.warning("recording_conflict_context_missing", tab_id=tab_id)
                logger.warning(
                    "recording_start_conflict",
                    tab_id=tab_id,
                    busy_tab_id=result.error.context.get("tabId"),
                )
            else:
                logger.error(
                    "recording_start_failed",
                    tab_id=tab_id,
                    error_code=response.error_code,
                    error=response.error_message,
                )
            return result

        self.session = RecordingSession(
            is_recording=True,
            tab_id=tab_id,
            action_count=0,
            status=RecordingStatus.ACTIVE,
        )
        self.preview = None
        self.conflict = None
        self.decision_pending = False
        self.status_message = None
        logger.info("recording_started", tab_id=tab_id)
        return ActionResult.success(self.session)

    def on_action_captured(self, event: ActionCapturedEvent) -> None:
        """Count a captured action; never changes the session status."""
        if not self.session.is_recording:
            logger.debug("recording_action_ignored", reason="not_recording", tab_id=event.tab_id)
            return
        if self.session.tab_id is not None and event.tab_id != self.session.tab_id:
            logger.debug(
                "recording_action_ignored",
                reason="other_tab",
                tab_id=event.tab_id,
                recording_tab_id=self.session.tab_id,
            )
            return

        count = max(self.session.action_count + 1, event.action_count)
        self.session = self.session.model_copy(update={"action_count": count})
        logger.debug(
            "recording_action_captured",
            tab_id=event.tab_id,
            action_type=event.action_type,
            action_count=count,
        )

    def on_status_changed(self, event: StatusChangedEvent) -> None:
        """Apply a backend-pushed status (timeout, error, pause, ...)."""
        update: dict = {"status": event.status}
        if event.status in TERMINAL_STATUSES:
            update["is_recording"] = False
        else:
            update["is_recording"] = True
            if event.tab_id is not None:
                update["tab_id"] = event.tab_id

        self.session = self.session.model_copy(update=update)
        self.status_message = event.message
        if event.status in TERMINAL_STATUSES:
            self.decision_pending = False

        failed = event.status in (RecordingStatus.ERROR, RecordingStatus.TIMEOUT)
        log = logger.warning if failed else logger.info
        log(
            "recording_status_changed",
            status=event.status.value,
            tab_id=event.tab_id,
            message=event.message,
        )

    async def get_action_count(self) -> ActionResult[int]:
        """Ask the recorder how many actions it has captured."""
        response = await self.gateway.recording_get_action_count()
        if not response.success:
            logger.error(
                "recording_action_count_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        data = response.data if isinstance(response.data, dict) else {}
        count = data.get("count")
        if not isinstance(count, int) or count < 0:
            logger.warning("recording_action_count_malformed", data=response.data)
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.DECODE,
                    code="MALFORMED_RESPONSE",
                    message="Recorder returned an invalid action count",
                )
            )
        return ActionResult.success(count)

    async def stop(self) -> ActionResult[StopOutcome]:
        """Guarded stop.

        With zero captured actions the session keeps running and the outcome
        has `decision_required` set; the caller must offer continue or
        discard. Otherwise the recorder is stopped and the preview returned.
        """
        if not self.session.is_recording:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="NOT_RECORDING",
                    message="No recording in progress",
                )
            )

        counted = await self.get_action_count()
        if not counted.ok:
            return ActionResult.failure(counted.error)

        if counted.data == 0:
            self.decision_pending = True
            logger.info("recording_stop_needs_decision", tab_id=self.session.tab_id)
            return ActionResult.success(StopOutcome(decision_required=True))

        response = await self.gateway.recording_stop()
        if not response.success:
            logger.error(
                "recording_stop_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        try:
            preview = RecordingPreview.model_validate(response.data or {})
        except ValidationError as e:
            logger.warning("recording_preview_malformed", error_count=e.error_count())
            preview = RecordingPreview(tab_id=self.session.tab_id)

        self.session = self.session.model_copy(
            update={"is_recording": False, "status": RecordingStatus.STOPPED}
        )
        self.preview = preview
        self.decision_pending = False
        logger.info(
            "recording_stopped",
            tab_id=preview.tab_id,
            action_count=len(preview.actions),
            duration_ms=preview.duration,
        )
        return ActionResult.success(StopOutcome(preview=preview))

    def continue_recording(self) -> None:
        """User chose to keep recording after an empty stop attempt."""
        self.decision_pending = False
        logger.info("recording_continued", tab_id=self.session.tab_id)

    async def cancel_recording(self) -> ActionResult[None]:
        """User chose to throw the recording away: stop the recorder, then reset."""
        response = await self.gateway.recording_stop()
        if not response.success:
            logger.warning(
                "recording_cancel_stop_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
        self.discard()
        if not response.success:
            return ActionResult.rejected(response)
        return ActionResult.success()

    def discard(self) -> None:
        """Reset to the initial state without calling the backend."""
        self.session = RecordingSession()
        self.preview = None
        self.conflict = None
        self.decision_pending = False
        self.status_message = None
        logger.info("recording_discarded")

    async def save(
        self,
        name: str,
        description: Optional[str] = None,
        actions: Optional[list[RecordedAction]] = None,
    ) -> ActionResult[str]:
        """Persist the stopped recording as an automation.

        Args:
            name: Automation name (required, limit from settings)
            description: Optional description (limit from settings)
            actions: Actions to save; defaults to the last stop preview

        Returns:
            The new automation id
        """
        if actions is None:
            actions = self.preview.actions if self.preview is not None else []

        try:
            request = SaveRecordingRequest(name=name, description=description, actions=actions)
        except ValidationError as e:
            logger.info("recording_save_invalid", errors=e.error_count())
            return ActionResult.invalid(e)

        response = await self.gateway.recording_save(request.to_payload())
        if not response.success:
            logger.error(
                "recording_save_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        data = response.data if isinstance(response.data, dict) else {}
        automation_id = data.get("automationId")
        self.preview = None
        logger.info(
            "recording_saved",
            automation_id=automation_id,
            action_count=len(request.actions),
        )

        if self.on_saved is not None:
            await self.on_saved()
        return ActionResult.success(automation_id)

    async def switch_to_recording_tab(
        self, conflict: Optional[RecordingConflict] = None
    ) -> ActionResult[None]:
        """Bring the tab that owns the active recording to the front."""
        target = conflict or self.conflict
        if target is None:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="NO_CONFLICT",
                    message="No busy recording tab to switch to",
                )
            )

        response = await self.gateway.tabs_switch(target.tab_id)
        if not response.success:
            logger.error(
                "recording_tab_switch_failed",
                tab_id=target.tab_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self.conflict = None
        logger.info("recording_tab_switched", tab_id=target.tab_id)
        return ActionResult.success()

    def dismiss_conflict(self) -> None:
        self.conflict = None

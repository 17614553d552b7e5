"""Conversational refinement of a saved automation.

The backend runs the conversation; this store keeps the client side of it:
the conversation id, the transcript, whether the assistant considers the
refinement complete, and the proposed before/after workflow once it is.
Saving replaces the automation on the backend, so the library is reloaded.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.automation import (
    ProposedChanges,
    RefinementMessage,
    RefinementReply,
    RefinementRole,
    RefinementStarted,
)
from sidebar_sync.models.gateway import GatewayResponse
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind
from sidebar_sync.services.automation_service import AutomationLibrary

logger = structlog.get_logger(__name__)


def _no_conversation() -> ActionError:
    return ActionError(
        kind=ErrorKind.VALIDATION,
        code="NO_REFINEMENT",
        message="No refinement conversation in progress",
    )


def _malformed(message: str) -> ActionError:
    return ActionError(kind=ErrorKind.DECODE, code="MALFORMED_RESPONSE", message=message)


class WorkflowRefinement:
    """Client state of the refinement conversation for one automation at a time."""

    def __init__(self, gateway: BackendGateway, library: AutomationLibrary):
        self.gateway = gateway
        self.library = library
        self.conversation_id: Optional[str] = None
        self.messages: list[RefinementMessage] = []
        self.is_complete = False
        self.proposed_changes: Optional[ProposedChanges] = None
        self.loading = False
        self.error: Optional[str] = None

    @property
    def automation_id(self) -> Optional[str]:
        return self.library.refining

    def _fail(self, response: GatewayResponse, fallback: str) -> ActionResult:
        has_text = response.error is not None and bool(response.error.message)
        self.error = response.error_message if has_text else fallback
        return ActionResult.rejected(response)

    async def open(self, automation_id: str) -> ActionResult[str]:
        """Mark `automation_id` as being refined and start its conversation."""
        self.close()
        self.library.start_refinement(automation_id)
        return await self.start()

    async def start(self) -> ActionResult[str]:
        """Ask the backend for a conversation; returns its id."""
        automation_id = self.automation_id
        if automation_id is None:
            return ActionResult.failure(_no_conversation())

        self.loading = True
        self.error = None
        try:
            response = await self.gateway.workflow_start_refinement(automation_id)
        finally:
            self.loading = False

        if not response.success:
            logger.error(
                "refinement_start_failed",
                automation_id=automation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return self._fail(response, "Failed to start refinement conversation")

        try:
            started = RefinementStarted.model_validate(response.data or {})
        except ValidationError as e:
            logger.warning("refinement_start_malformed", error_count=e.error_count())
            self.error = "Failed to start refinement conversation"
            return ActionResult.failure(_malformed("Refinement could not be started"))

        self.conversation_id = started.conversation_id
        self.messages = [
            RefinementMessage(role=RefinementRole.ASSISTANT, content=started.greeting),
            RefinementMessage(role=RefinementRole.ASSISTANT, content=started.first_question),
        ]
        logger.info(
            "refinement_started",
            automation_id=automation_id,
            conversation_id=started.conversation_id,
        )
        return ActionResult.success(started.conversation_id)

    async def send(self, text: str) -> ActionResult[RefinementReply]:
        """Send the user's answer and record the assistant's reply.

        The user's line joins the transcript before the call and stays there
        if the call fails.
        """
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
        if self.conversation_id is None:
            return ActionResult.failure(_no_conversation())
        if self.loading:
            return ActionResult.failure(
                ActionError(
                    kind=ErrorKind.VALIDATION,
                    code="REFINEMENT_BUSY",
                    message="Waiting for the previous reply",
                )
            )

        self.messages.append(RefinementMessage(role=RefinementRole.USER, content=message))
        self.loading = True
        self.error = None
        try:
            response = await self.gateway.workflow_send_message(self.conversation_id, message)
        finally:
            self.loading = False

        if not response.success:
            logger.error(
                "refinement_message_failed",
                conversation_id=self.conversation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return self._fail(response, "Failed to send message")

        try:
            reply = RefinementReply.model_validate(response.data or {})
        except ValidationError as e:
            logger.warning("refinement_reply_malformed", error_count=e.error_count())
            self.error = "Failed to send message"
            return ActionResult.failure(_malformed("Refinement reply could not be read"))

        self.messages.append(
            RefinementMessage(role=RefinementRole.ASSISTANT, content=reply.ai_response)
        )
        self.is_complete = reply.is_complete
        if reply.is_complete and reply.customizations and reply.original_workflow:
            self.proposed_changes = ProposedChanges(
                customizations=reply.customizations,
                original_workflow=reply.original_workflow,
            )
        logger.info(
            "refinement_reply_received",
            conversation_id=self.conversation_id,
            is_complete=reply.is_complete,
        )
        return ActionResult.success(reply)

    async def save(self) -> ActionResult[None]:
        """Save the refined workflow, reload the library and close the conversation."""
        if self.conversation_id is None:
            return ActionResult.failure(_no_conversation())

        self.error = None
        response = await self.gateway.workflow_save_refined(self.conversation_id)
        if not response.success:
            logger.error(
                "refinement_save_failed",
                conversation_id=self.conversation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return self._fail(response, "Failed to save refinement - please retry")

        logger.info(
            "refinement_saved",
            automation_id=self.automation_id,
            conversation_id=self.conversation_id,
        )
        self.close()
        await self.library.load()
        return ActionResult.success()

    async def reset(self) -> ActionResult[str]:
        """Start over: drop the transcript and open a fresh conversation."""
        if self.conversation_id is None:
            return ActionResult.failure(_no_conversation())

        self.error = None
        response = await self.gateway.workflow_reset(self.conversation_id)
        if not response.success:
            logger.error(
                "refinement_reset_failed",
                conversation_id=self.conversation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return self._fail(response, "Failed to reset conversation")

        logger.info("refinement_reset", conversation_id=self.conversation_id)
        self._clear()
        return await self.start()

    def close(self) -> None:
        """Leave the refinement; nothing is sent to the backend."""
        self._clear()
        self.error = None
        self.library.cancel_refinement()

    def _clear(self) -> None:
        self.conversation_id = None
        self.messages = []
        self.is_complete = False
        self.proposed_changes = None

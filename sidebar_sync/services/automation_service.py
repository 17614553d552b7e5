"""Saved automation library: list, edit, delete and the refinement slot."""

from typing import Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.automation import Automation
from sidebar_sync.models.requests import EditAutomationRequest
from sidebar_sync.models.result import ActionResult

logger = structlog.get_logger(__name__)


class AutomationLibrary:
    """Cache of the backend's automation list.

    Edits and deletes are pessimistic: local state changes only after the
    backend confirms. Execution counts are server-owned and refreshed by
    reloading.
    """

    def __init__(self, gateway: BackendGateway):
        self.gateway = gateway
        self.automations: list[Automation] = []
        self.loading = False
        # id of the automation whose refinement conversation is open
        self.refining: Optional[str] = None

    def start_refinement(self, automation_id: str) -> None:
        self.refining = automation_id
        logger.info("automation_refinement_opened", automation_id=automation_id)

    def cancel_refinement(self) -> None:
        self.refining = None

    def get(self, automation_id: str) -> Optional[Automation]:
        for automation in self.automations:
            if automation.id == automation_id:
                return automation
        return None

    async def load(self) -> ActionResult[list[Automation]]:
        """Replace the library with the backend's current list."""
        self.loading = True
        try:
            response = await self.gateway.automations_get_all()
        finally:
            self.loading = False

        if not response.success:
            logger.error(
                "automation_load_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        items = response.data if isinstance(response.data, list) else []
        automations = []
        for item in items:
            try:
                automations.append(Automation.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "automation_decode_failed",
                    automation_id=item.get("id") if isinstance(item, dict) else None,
                    error_count=e.error_count(),
                )

        self.automations = automations
        logger.info("automations_loaded", count=len(automations))
        return ActionResult.success(list(automations))

    async def edit(
        self,
        automation_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> ActionResult[None]:
        """Rename or re-describe an automation, then reload the list."""
        try:
            request = EditAutomationRequest(
                automation_id=automation_id, name=name, description=description
            )
        except ValidationError as e:
            logger.info("automation_edit_invalid", automation_id=automation_id)
            return ActionResult.invalid(e)

        response = await self.gateway.automations_edit(request.to_payload())
        if not response.success:
            logger.error(
                "automation_edit_failed",
                automation_id=automation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("automation_edited", automation_id=automation_id)
        await self.load()
        return ActionResult.success()

    async def delete(self, automation_id: str) -> ActionResult[None]:
        """Delete an automation; it leaves the local list once the backend agrees."""
        response = await self.gateway.automations_delete(automation_id)
        if not response.success:
            logger.error(
                "automation_delete_failed",
                automation_id=automation_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self.automations = [a for a in self.automations if a.id != automation_id]
        logger.info("automation_deleted", automation_id=automation_id)
        return ActionResult.success()

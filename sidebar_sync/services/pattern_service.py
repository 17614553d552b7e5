"""Queue of detected patterns awaiting a save or dismiss decision."""

import json
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.notification import Notification, NotificationType
from sidebar_sync.models.pattern import Pattern, PatternRef
from sidebar_sync.models.requests import SaveAutomationRequest
from sidebar_sync.models.result import ActionResult
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe
from sidebar_sync.services.notification_service import decode_notifications

logger = structlog.get_logger(__name__)

# Keys a notification payload needs before it is treated as a pattern
REQUIRED_PATTERN_KEYS = ("id", "type", "patternData")


def decode_pattern(data: Any) -> Optional[Pattern]:
    """Decode a notification's `data` into a Pattern.

    `data` may be the JSON-encoded payload or an already decoded dict.

    Returns:
        The pattern, or None if the payload does not have pattern shape
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            logger.error("pattern_decode_failed", reason="invalid_json", error=str(e))
            return None

    if not isinstance(data, dict):
        logger.error("pattern_decode_failed", reason="not_an_object")
        return None

    missing = [key for key in REQUIRED_PATTERN_KEYS if key not in data]
    if missing:
        logger.error("pattern_decode_failed", reason="missing_keys", missing=missing)
        return None

    try:
        return Pattern.model_validate(data)
    except ValidationError as e:
        logger.error(
            "pattern_decode_failed",
            reason="invalid_fields",
            pattern_id=data.get("id"),
            error_count=e.error_count(),
        )
        return None


class PatternQueue:
    """Holds at most one live entry per pattern id.

    Ingest is first-write-wins. Removal after a dismiss or save is permanent
    for the queue's lifetime: reloads skip removed ids, and only a newly
    pushed notification can bring a removed pattern back.
    """

    OWNER = "patterns"

    def __init__(self, gateway: BackendGateway):
        self.gateway = gateway
        self.entries: list[PatternRef] = []
        self._removed_ids: set[str] = set()
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def patterns(self) -> list[Pattern]:
        return [entry.pattern for entry in self.entries]

    @property
    def unacknowledged_count(self) -> int:
        return len(self.entries)

    def get(self, pattern_id: str) -> Optional[PatternRef]:
        for entry in self.entries:
            if entry.pattern.id == pattern_id:
                return entry
        return None

    def subscribe(self, bus: EventBus) -> None:
        self._unsubscribe = bus.subscribe(
            Channel.NOTIFICATION_RECEIVED, self.on_notification, owner=self.OWNER
        )

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_notification(self, notification: Notification) -> None:
        """Push handler: a newly pushed pattern may re-enter the queue."""
        if notification.type == NotificationType.PATTERN:
            self.ingest(notification)

    def ingest(self, notification: Notification) -> Optional[Pattern]:
        """Queue the pattern carried by `notification`.

        Returns:
            The queued pattern, or None if the payload did not decode or the
            pattern id is already queued
        """
        pattern = decode_pattern(notification.data)
        if pattern is None:
            return None
        self._removed_ids.discard(pattern.id)
        if self._add(PatternRef(notification_id=notification.id, pattern=pattern)):
            return pattern
        return None

    def _add(self, entry: PatternRef) -> bool:
        if self.get(entry.pattern.id) is not None:
            logger.debug(
                "pattern_duplicate_discarded",
                pattern_id=entry.pattern.id,
                notification_id=entry.notification_id,
            )
            return False

        self.entries.append(entry)
        logger.info(
            "pattern_queued",
            pattern_id=entry.pattern.id,
            type=entry.pattern.type.value,
            confidence=entry.pattern.confidence,
            queued=len(self.entries),
        )
        return True

    def _remove(self, pattern_id: str) -> None:
        self.entries = [e for e in self.entries if e.pattern.id != pattern_id]
        self._removed_ids.add(pattern_id)

    async def load(self) -> ActionResult[list[Pattern]]:
        """Rebuild the queue from undismissed pattern notifications."""
        response = await self.gateway.notifications_get_all(NotificationType.PATTERN.value)
        if not response.success:
            logger.error(
                "pattern_load_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self.entries = []
        for notification in decode_notifications(response.data):
            if not notification.is_unread:
                continue
            pattern = decode_pattern(notification.data)
            if pattern is None or pattern.id in self._removed_ids:
                continue
            self._add(PatternRef(notification_id=notification.id, pattern=pattern))

        logger.info("patterns_loaded", count=len(self.entries))
        return ActionResult.success(self.patterns)

    async def dismiss(self, pattern_id: str) -> ActionResult[None]:
        """Dismiss a pattern; it leaves the queue only once the backend agrees."""
        response = await self.gateway.pattern_dismiss(pattern_id)
        if not response.success:
            logger.error(
                "pattern_dismiss_failed",
                pattern_id=pattern_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self._remove(pattern_id)
        logger.info("pattern_dismissed", pattern_id=pattern_id)
        return ActionResult.success()

    async def convert_to_automation(
        self,
        pattern_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> ActionResult[str]:
        """Save a queued pattern as an automation.

        Args:
            pattern_id: Pattern to convert
            name: Automation name (required, limit from settings)
            description: Optional description (limit from settings)

        Returns:
            The created automation id; on any failure the pattern stays queued
        """
        try:
            request = SaveAutomationRequest(
                pattern_id=pattern_id, name=name, description=description
            )
        except ValidationError as e:
            logger.info("automation_save_invalid", pattern_id=pattern_id, errors=e.error_count())
            return ActionResult.invalid(e)

        response = await self.gateway.pattern_save_automation(request.to_payload())
        if not response.success:
            logger.error(
                "automation_save_failed",
                pattern_id=pattern_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        automation_id = response.data.get("id") if isinstance(response.data, dict) else None
        if automation_id is None:
            logger.warning("automation_save_missing_id", pattern_id=pattern_id)

        self._remove(pattern_id)
        logger.info(
            "pattern_converted_to_automation",
            pattern_id=pattern_id,
            automation_id=automation_id,
        )
        return ActionResult.success(automation_id)

    def clear_acknowledged(self) -> None:
        """Empty the queue without touching the backend."""
        logger.info("patterns_cleared", count=len(self.entries))
        self.entries = []

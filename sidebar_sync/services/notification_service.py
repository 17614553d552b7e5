"""Notification inbox: full refresh, push inserts and optimistic dismissal."""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.notification import Notification, NotificationType
from sidebar_sync.models.result import ActionResult
from sidebar_sync.services.event_bus import Channel, EventBus, Unsubscribe

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def decode_notifications(items: object) -> list[Notification]:
    """Validate a backend notification list, skipping malformed entries."""
    if not isinstance(items, list):
        logger.warning("notification_list_malformed", data_type=type(items).__name__)
        return []

    notifications = []
    for item in items:
        try:
            notifications.append(Notification.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "notification_decode_failed",
                notification_id=item.get("id") if isinstance(item, dict) else None,
                error_count=e.error_count(),
            )
    return notifications


class NotificationStore:
    """Client-side cache of the notification inbox.

    Dismissal is optimistic and never rolled back: the local copy is marked
    dismissed before the backend is asked, and a failed confirmation is only
    logged and reported. The unread count is always derived from the list.
    """

    OWNER = "notifications"

    def __init__(
        self,
        gateway: BackendGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.gateway = gateway
        self.clock = clock
        self.notifications: list[Notification] = []
        self.loading = False
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if n.is_unread)

    def get(self, notification_id: str) -> Optional[Notification]:
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        return None

    def subscribe(self, bus: EventBus) -> None:
        """Listen for `notification.received` (replaces any earlier subscription)."""
        self._unsubscribe = bus.subscribe(
            Channel.NOTIFICATION_RECEIVED, self.receive, owner=self.OWNER
        )

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def load(
        self, type: Optional[NotificationType] = None
    ) -> ActionResult[list[Notification]]:
        """Replace the inbox with the backend's current list.

        Args:
            type: Restrict the refresh to one notification type

        Returns:
            The loaded notifications, or the backend error (the previous
            list is kept on failure)
        """
        self.loading = True
        try:
            response = await self.gateway.notifications_get_all(
                type.value if type is not None else None
            )
        finally:
            self.loading = False

        if not response.success:
            logger.error(
                "notification_load_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        self.notifications = decode_notifications(response.data)
        logger.info(
            "notifications_loaded",
            count=len(self.notifications),
            unread=self.unread_count,
            type=type.value if type is not None else None,
        )
        return ActionResult.success(list(self.notifications))

    def receive(self, notification: Notification) -> None:
        """Insert a pushed notification at the head of the inbox."""
        if self.get(notification.id) is not None:
            logger.debug("notification_duplicate_ignored", notification_id=notification.id)
            return

        self.notifications.insert(0, notification)
        logger.info(
            "notification_received",
            notification_id=notification.id,
            type=notification.type.value,
            unread=self.unread_count,
        )

    async def dismiss(self, notification_id: str) -> ActionResult[None]:
        """Mark one notification dismissed locally, then confirm with the backend."""
        now = self.clock()
        self.notifications = [
            n.dismissed(now) if n.id == notification_id else n for n in self.notifications
        ]

        response = await self.gateway.notifications_dismiss(notification_id)
        if not response.success:
            logger.warning(
                "notification_dismiss_unconfirmed",
                notification_id=notification_id,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("notification_dismissed", notification_id=notification_id)
        return ActionResult.success()

    async def dismiss_all(self) -> ActionResult[None]:
        """Mark every notification dismissed locally, then confirm with the backend."""
        now = self.clock()
        self.notifications = [n.dismissed(now) for n in self.notifications]

        response = await self.gateway.notifications_dismiss_all()
        if not response.success:
            logger.warning(
                "notification_dismiss_unconfirmed",
                notification_id=None,
                error_code=response.error_code,
                error=response.error_message,
            )
            return ActionResult.rejected(response)

        logger.info("notifications_dismissed_all", count=len(self.notifications))
        return ActionResult.success()

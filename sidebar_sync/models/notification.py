"""Notification models for the sidebar inbox."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class NotificationType(str, Enum):
    """Valid notification types."""

    PATTERN = "pattern"
    MONITOR = "monitor"
    SYSTEM = "system"


class Severity(str, Enum):
    """Notification severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A backend-pushed inbox item.

    Immutable except for `dismissed_at`, which only ever moves from None to a
    timestamp; `dismissed()` returns the updated copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: NotificationType
    severity: Severity = Severity.INFO
    title: str
    message: str
    data: Any = None
    created_at: datetime
    dismissed_at: Optional[datetime] = None

    @property
    def is_unread(self) -> bool:
        return self.dismissed_at is None

    def dismissed(self, at: datetime) -> "Notification":
        """Return a dismissed copy; an already dismissed notification keeps its timestamp."""
        if self.dismissed_at is not None:
            return self
        return self.model_copy(update={"dismissed_at": at})

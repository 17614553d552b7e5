"""Recording session models and recorder push-event payloads."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecordingStatus(str, Enum):
    """Lifecycle states of a recording session."""

    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"
    TIMEOUT = "timeout"
    ERROR = "error"


# Statuses after which the recorder is no longer capturing
TERMINAL_STATUSES = frozenset(
    {RecordingStatus.STOPPED, RecordingStatus.TIMEOUT, RecordingStatus.ERROR}
)


class RecordingSession(BaseModel):
    """Client view of the (at most one) recording session."""

    model_config = ConfigDict(frozen=True)

    is_recording: bool = False
    tab_id: Optional[str] = None
    action_count: int = Field(default=0, ge=0)
    status: RecordingStatus = RecordingStatus.STOPPED


class RecordedAction(BaseModel):
    """One captured user action."""

    type: str
    timestamp: int
    data: Any = None


class RecordingPreview(BaseModel):
    """What `recording.stop` hands back for the save/discard decision."""

    model_config = ConfigDict(populate_by_name=True)

    actions: list[RecordedAction] = Field(default_factory=list)
    tab_id: Optional[str] = Field(default=None, alias="tabId")
    duration: int = 0


class RecordingConflict(BaseModel):
    """Context of a RECORDING_ACTIVE rejection: which tab is busy."""

    model_config = ConfigDict(populate_by_name=True)

    tab_id: str = Field(alias="tabId")
    tab_title: str = Field(default="", alias="tabTitle")


class StopOutcome(BaseModel):
    """Result of a guarded stop.

    `decision_required` is set when nothing was captured; the session is still
    running and the user has to choose between continuing and discarding.
    """

    decision_required: bool = False
    preview: Optional[RecordingPreview] = None


class ActionCapturedEvent(BaseModel):
    """Payload of `recording.action-captured`."""

    model_config = ConfigDict(populate_by_name=True)

    tab_id: str = Field(alias="tabId")
    action_count: int = Field(ge=0, alias="actionCount")
    action_type: str = Field(default="", alias="actionType")


class StatusChangedEvent(BaseModel):
    """Payload of `recording.status-changed`."""

    model_config = ConfigDict(populate_by_name=True)

    status: RecordingStatus
    tab_id: Optional[str] = Field(default=None, alias="tabId")
    message: Optional[str] = None

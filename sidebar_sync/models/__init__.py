"""Pydantic models for the sidebar state-sync core."""

from sidebar_sync.models.automation import (
    Automation,
    ProposedChanges,
    RefinementMessage,
    RefinementReply,
    RefinementRole,
    RefinementStarted,
)
from sidebar_sync.models.execution import (
    ContinuationSuggestion,
    ExecutionCancelledEvent,
    ExecutionCompleteEvent,
    ExecutionErrorEvent,
    ExecutionProgress,
    ExecutionProgressEvent,
    PatternContext,
)
from sidebar_sync.models.gateway import GatewayError, GatewayResponse
from sidebar_sync.models.message import (
    ConversationTurn,
    ConversationView,
    Message,
    MessageRole,
    MessagesUpdatedEvent,
    TabInfo,
)
from sidebar_sync.models.notification import Notification, NotificationType, Severity
from sidebar_sync.models.pattern import Pattern, PatternRef, PatternType
from sidebar_sync.models.recording import (
    ActionCapturedEvent,
    RecordedAction,
    RecordingConflict,
    RecordingPreview,
    RecordingSession,
    RecordingStatus,
    StatusChangedEvent,
    StopOutcome,
)
from sidebar_sync.models.requests import (
    ContinuationRequest,
    EditAutomationRequest,
    SaveAutomationRequest,
    SaveRecordingRequest,
)
from sidebar_sync.models.result import ActionError, ActionResult, ErrorKind

__all__ = [
    "ActionCapturedEvent",
    "ActionError",
    "ActionResult",
    "Automation",
    "ContinuationRequest",
    "ContinuationSuggestion",
    "ConversationTurn",
    "ConversationView",
    "EditAutomationRequest",
    "ErrorKind",
    "ExecutionCancelledEvent",
    "ExecutionCompleteEvent",
    "ExecutionErrorEvent",
    "ExecutionProgress",
    "ExecutionProgressEvent",
    "GatewayError",
    "GatewayResponse",
    "Message",
    "MessageRole",
    "MessagesUpdatedEvent",
    "Notification",
    "NotificationType",
    "Pattern",
    "PatternContext",
    "PatternRef",
    "PatternType",
    "ProposedChanges",
    "RecordedAction",
    "RecordingConflict",
    "RecordingPreview",
    "RecordingSession",
    "RecordingStatus",
    "RefinementMessage",
    "RefinementReply",
    "RefinementRole",
    "RefinementStarted",
    "SaveAutomationRequest",
    "SaveRecordingRequest",
    "Severity",
    "StatusChangedEvent",
    "StopOutcome",
]

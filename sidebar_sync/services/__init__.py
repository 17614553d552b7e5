"""Services package exports."""

from sidebar_sync.services.automation_service import AutomationLibrary
from sidebar_sync.services.conversation_service import ConversationAssembler
from sidebar_sync.services.event_bus import Channel, EventBus
from sidebar_sync.services.execution_service import AutomationExecutionTracker
from sidebar_sync.services.logging_service import configure_logging, get_logger
from sidebar_sync.services.notification_service import NotificationStore
from sidebar_sync.services.pattern_service import PatternQueue
from sidebar_sync.services.proactive_service import ContinuationSuggestions
from sidebar_sync.services.recording_service import RecordingStateMachine
from sidebar_sync.services.refinement_service import WorkflowRefinement
from sidebar_sync.services.scheduler_service import ActiveTabPoller

__all__ = [
    "ActiveTabPoller",
    "AutomationExecutionTracker",
    "AutomationLibrary",
    "Channel",
    "ConversationAssembler",
    "ContinuationSuggestions",
    "EventBus",
    "NotificationStore",
    "PatternQueue",
    "RecordingStateMachine",
    "WorkflowRefinement",
    "configure_logging",
    "get_logger",
]

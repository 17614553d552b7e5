"""Chat message, conversation turn and tab models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sidebar_sync.models.pattern import PatternRef


class MessageRole(str, Enum):
    """Valid message roles."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A chat message from either the direct chat feed or the pattern source.

    Attributes:
        id: Unique message identifier
        role: Who produced the message
        content: Display text
        timestamp: Epoch milliseconds, the merge key for turn assembly
        is_streaming: True while the assistant is still producing content
        pattern_ref: Set on messages generated from a pattern notification
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    role: MessageRole
    content: str = ""
    timestamp: int = Field(ge=0)
    is_streaming: bool = Field(default=False, alias="isStreaming")
    pattern_ref: Optional[PatternRef] = Field(default=None, alias="patternRef")


class ConversationTurn(BaseModel):
    """One user/assistant exchange; either side may be missing but not both."""

    model_config = ConfigDict(frozen=True)

    user: Optional[Message] = None
    assistant: Optional[Message] = None


class ConversationView(BaseModel):
    """Render-ready conversation: the turns plus the trailing loading flag."""

    model_config = ConfigDict(frozen=True)

    turns: tuple[ConversationTurn, ...] = ()
    show_loading: bool = False


class MessagesUpdatedEvent(BaseModel):
    """Payload of `chat.messages-updated`: the full direct-chat snapshot."""

    messages: list[Message] = Field(default_factory=list)


class TabInfo(BaseModel):
    """Active browser tab as reported by `tabs.getActiveTabInfo`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str = ""
    url: str = ""
    is_active: bool = Field(default=True, alias="isActive")

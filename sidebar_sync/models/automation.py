"""Automation models (saved, replayable encodings of patterns)."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from sidebar_sync.models.pattern import PatternType


class Automation(BaseModel):
    """A saved automation as returned by `automations.getAll`.

    `execution_count` and `last_executed` are server-authoritative and only
    change through a reload.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    pattern_id: str = Field(alias="patternId")
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    pattern_type: PatternType = Field(alias="patternType")
    pattern_data: dict[str, Any] = Field(default_factory=dict, alias="patternData")
    execution_count: int = Field(default=0, ge=0, alias="executionCount")
    last_executed: Optional[datetime] = Field(default=None, alias="lastExecuted")
    created_at: datetime = Field(alias="createdAt")


class RefinementRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class RefinementMessage(BaseModel):
    """One line of a refinement conversation."""

    model_config = ConfigDict(frozen=True)

    role: RefinementRole
    content: str


class RefinementStarted(BaseModel):
    """Reply to `workflow.startRefinement`."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId", min_length=1)
    greeting: str
    first_question: str = Field(alias="firstQuestion")


class RefinementReply(BaseModel):
    """Reply to `workflow.sendMessage`.

    Attributes:
        ai_response: The assistant's next line
        is_complete: Whether enough preferences were gathered to save
        customizations: Proposed workflow, present once complete
        original_workflow: Workflow before refinement, present once complete
    """

    model_config = ConfigDict(populate_by_name=True)

    ai_response: str = Field(alias="aiResponse")
    is_complete: bool = Field(default=False, alias="isComplete")
    customizations: Optional[dict[str, Any]] = None
    original_workflow: Optional[dict[str, Any]] = Field(default=None, alias="originalWorkflow")


class ProposedChanges(BaseModel):
    """Before/after pair shown for review before a refined workflow is saved."""

    model_config = ConfigDict(frozen=True)

    customizations: dict[str, Any]
    original_workflow: dict[str, Any]

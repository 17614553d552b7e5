"""Pattern models derived from pattern-type notifications."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PatternType(str, Enum):
    """Types of detected behavioral patterns."""

    NAVIGATION = "navigation"
    FORM = "form"
    COPY_PASTE = "copy-paste"


class Pattern(BaseModel):
    """A recurring user behavior detected by the backend.

    Identity is the pattern id, not the id of the notification that carried it.
    Field names follow the backend's camelCase payload via aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: PatternType
    pattern_data: dict[str, Any] = Field(default_factory=dict, alias="patternData")
    confidence: float = Field(default=0.0, ge=0, le=100)
    occurrence_count: int = Field(default=1, ge=1, alias="occurrenceCount")
    first_seen: Optional[datetime] = Field(default=None, alias="firstSeen")
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")
    intent_summary: Optional[str] = Field(default=None, alias="intentSummary")
    intent_summary_detailed: Optional[str] = Field(
        default=None, alias="intentSummaryDetailed"
    )


class PatternRef(BaseModel):
    """Link from a chat message back to the notification and pattern it came from."""

    model_config = ConfigDict(frozen=True)

    notification_id: str
    pattern: Pattern

"""Request models validated client-side before any backend call."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sidebar_sync.config import get_settings
from sidebar_sync.models.recording import RecordedAction


class NamedRequest(BaseModel):
    """Shared name/description rules for anything that creates or edits an automation.

    Attributes:
        name: Automation name (required, limit from settings)
        description: Optional description (limit from settings)
    """

    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        """Strip whitespace and enforce the configured length limit."""
        name = v.strip()
        if not name:
            raise ValueError("Name is required")
        limit = get_settings().name_max_length
        if len(name) > limit:
            raise ValueError(f"Name must be {limit} characters or less")
        return name

    @field_validator("description")
    @classmethod
    def description_valid(cls, v: Optional[str]) -> Optional[str]:
        """Enforce the description limit; blank descriptions become None."""
        if v is None:
            return v
        description = v.strip()
        limit = get_settings().description_max_length
        if len(description) > limit:
            raise ValueError(f"Description must be {limit} characters or less")
        return description or None

    def _with_description(self, payload: dict) -> dict:
        if self.description is not None:
            payload["description"] = self.description
        return payload


class SaveAutomationRequest(NamedRequest):
    """Convert a queued pattern into an automation."""

    pattern_id: str = Field(min_length=1)

    def to_payload(self) -> dict:
        """Payload for `pattern.saveAutomation`, which takes snake_case keys."""
        return self._with_description({"pattern_id": self.pattern_id, "name": self.name})


class EditAutomationRequest(NamedRequest):
    """Rename or re-describe an existing automation."""

    automation_id: str = Field(min_length=1)

    def to_payload(self) -> dict:
        return self._with_description({"automationId": self.automation_id, "name": self.name})


class SaveRecordingRequest(NamedRequest):
    """Persist a stopped recording as an automation."""

    actions: list[RecordedAction] = Field(default_factory=list)

    def to_payload(self) -> dict:
        return self._with_description(
            {
                "name": self.name,
                "actions": [action.model_dump() for action in self.actions],
            }
        )


class ContinuationRequest(BaseModel):
    """Continue a detected pattern for a number of further items."""

    pattern_id: str = Field(min_length=1)
    item_count: int

    @field_validator("item_count")
    @classmethod
    def item_count_in_range(cls, v: int) -> int:
        """Validate the item count against the configured bounds."""
        settings = get_settings()
        low, high = settings.continuation_min_items, settings.continuation_max_items
        if v < low or v > high:
            raise ValueError(f"Item count must be between {low} and {high}")
        return v

    def to_payload(self) -> dict:
        return {"patternId": self.pattern_id, "itemCount": self.item_count}

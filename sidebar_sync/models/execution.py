"""Execution progress models and executor push-event payloads."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ExecutionProgress(BaseModel):
    """Latest progress for one in-flight automation, keyed by automation id."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    automation_id: str = Field(alias="automationId")
    current_step: int = Field(ge=0, alias="currentStep")
    total_steps: int = Field(ge=0, alias="totalSteps")
    step_description: str = Field(default="", alias="stepDescription")
    screenshot: Optional[str] = None

    @model_validator(mode="after")
    def current_within_total(self) -> "ExecutionProgress":
        """Reject progress that claims more steps than the run has."""
        if self.total_steps and self.current_step > self.total_steps:
            raise ValueError("currentStep must not exceed totalSteps")
        return self


class ExecutionProgressEvent(BaseModel):
    """Payload of `execution.progress`.

    Library executions identify themselves by `automationId` with step fields;
    continuation runs use `executionId` with `current`/`total`/`action`.
    """

    model_config = ConfigDict(populate_by_name=True)

    automation_id: Optional[str] = Field(default=None, alias="automationId")
    execution_id: Optional[str] = Field(default=None, alias="executionId")
    current: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    action: str = ""
    screenshot: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_step_fields(cls, data: Any) -> Any:
        """Map the executor's currentStep/totalSteps/stepDescription spelling."""
        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("current", data.pop("currentStep", 0))
            data.setdefault("total", data.pop("totalSteps", 0))
            data.setdefault("action", data.pop("stepDescription", ""))
        return data

    @model_validator(mode="after")
    def has_identity(self) -> "ExecutionProgressEvent":
        if not self.automation_id and not self.execution_id:
            raise ValueError("progress event needs automationId or executionId")
        if self.total and self.current > self.total:
            raise ValueError("current must not exceed total")
        return self

    def to_progress(self) -> ExecutionProgress:
        return ExecutionProgress(
            automation_id=self.automation_id or self.execution_id or "",
            current_step=self.current,
            total_steps=self.total,
            step_description=self.action,
            screenshot=self.screenshot,
        )


class PatternContext(BaseModel):
    """Summary of the pattern a continuation ran, for the completion message."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    url_count: Optional[int] = Field(default=None, alias="urlCount")
    first_url: Optional[str] = Field(default=None, alias="firstUrl")
    last_url: Optional[str] = Field(default=None, alias="lastUrl")
    domain: Optional[str] = None
    field_count: Optional[int] = Field(default=None, alias="fieldCount")


class ExecutionCompleteEvent(BaseModel):
    """Payload of `execution.complete` (success or failure)."""

    model_config = ConfigDict(populate_by_name=True)

    automation_id: Optional[str] = Field(default=None, alias="automationId")
    execution_id: Optional[str] = Field(default=None, alias="executionId")
    success: bool = True
    steps_executed: Optional[int] = Field(default=None, alias="stepsExecuted")
    items_processed: Optional[int] = Field(default=None, alias="itemsProcessed")
    error: Optional[str] = None
    pattern_context: Optional[PatternContext] = Field(default=None, alias="patternContext")


class ExecutionCancelledEvent(BaseModel):
    """Payload of `execution.cancelled`."""

    model_config = ConfigDict(populate_by_name=True)

    execution_id: str = Field(alias="executionId")
    automation_id: Optional[str] = Field(default=None, alias="automationId")
    stopped_at: int = Field(default=0, ge=0, alias="stoppedAt")


class ExecutionErrorEvent(BaseModel):
    """Payload of `execution.error`."""

    model_config = ConfigDict(populate_by_name=True)

    execution_id: str = Field(alias="executionId")
    automation_id: Optional[str] = Field(default=None, alias="automationId")
    error: str = "Unknown error"


class ContinuationSuggestion(BaseModel):
    """Payload of `pattern.suggest-continuation`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pattern_id: str = Field(min_length=1, alias="patternId")
    intent_summary: str = Field(default="", alias="intentSummary")
    estimated_items: int = Field(ge=1, alias="estimatedItems")
    match_count: int = Field(default=2, ge=0, alias="matchCount")

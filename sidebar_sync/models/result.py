"""Outcome of a store operation, covering the client error taxonomy."""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from sidebar_sync.models.gateway import GatewayResponse

T = TypeVar("T")

# Backend error codes that describe a business-rule violation the user can act on
CONFLICT_CODES = frozenset({"RECORDING_ACTIVE"})


class ErrorKind(str, Enum):
    """Categories of failure a store operation can report."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    BACKEND = "backend"
    DECODE = "decode"


class ActionError(BaseModel):
    """A failure surfaced to the caller instead of being raised."""

    kind: ErrorKind
    code: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_validation(cls, exc: ValidationError) -> "ActionError":
        """Convert the first pydantic error into an inline validation error."""
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(loc) for loc in first.get("loc", ())) or "input"
        message = str(first.get("msg", "Invalid input"))
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")
        return cls(
            kind=ErrorKind.VALIDATION,
            code="VALIDATION_ERROR",
            message=message,
            context={"field": field},
        )

    @classmethod
    def from_response(cls, response: GatewayResponse) -> "ActionError":
        """Classify a failed gateway response as conflict or backend error."""
        code = response.error_code or "UNKNOWN_ERROR"
        kind = ErrorKind.CONFLICT if code in CONFLICT_CODES else ErrorKind.BACKEND
        details = dict(response.error.details) if response.error else {}
        return cls(kind=kind, code=code, message=response.error_message, context=details)


class ActionResult(BaseModel, Generic[T]):
    """Result of a store operation: `ok` with `data`, or an `error`."""

    ok: bool
    data: Optional[T] = None
    error: Optional[ActionError] = None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "ActionResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ActionError) -> "ActionResult[T]":
        return cls(ok=False, error=error)

    @property
    def is_conflict(self) -> bool:
        return self.error is not None and self.error.kind == ErrorKind.CONFLICT

    @classmethod
    def rejected(cls, response: GatewayResponse) -> "ActionResult[T]":
        """Failure result for a gateway response with `success: false`."""
        return cls.failure(ActionError.from_response(response))

    @classmethod
    def invalid(cls, exc: ValidationError) -> "ActionResult[T]":
        """Failure result for input rejected before any call was made."""
        return cls.failure(ActionError.from_validation(exc))

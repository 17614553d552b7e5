"""Envelope models for backend request/response calls."""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class GatewayError(BaseModel):
    """Error body returned by the backend.

    The backend puts structured context directly on the error object, next to
    `code` and `message` (e.g. `{"code": "RECORDING_ACTIVE", "message": ...,
    "tabId": ..., "tabTitle": ...}`). Those extra fields are collected into
    `details`.

    Attributes:
        code: Machine-readable error code (e.g. "RECORDING_ACTIVE")
        message: Human-readable explanation
        details: Structured context attached to the error (busy tab id/title, ...)
    """

    code: str = "UNKNOWN_ERROR"
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_details(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = {"code", "message", "details"}
        extra = {key: value for key, value in data.items() if key not in known}
        if not extra:
            return data
        details = data.get("details")
        merged = {**details, **extra} if isinstance(details, dict) else extra
        return {**{key: data[key] for key in known & data.keys()}, "details": merged}


class GatewayResponse(BaseModel):
    """The `{success, data?, error?}` envelope every backend call returns."""

    success: bool
    data: Any = None
    error: Optional[GatewayError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "GatewayResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, **context: Any) -> "GatewayResponse":
        """Failure envelope in the backend's shape, context fields flat on the error."""
        return cls.model_validate(
            {"success": False, "error": {"code": code, "message": message, **context}}
        )

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @property
    def error_message(self) -> str:
        """Error text for display, with a generic fallback."""
        if self.error and self.error.message:
            return self.error.message
        return "Request failed"

"""Unit tests for Pydantic models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from sidebar_sync.models.automation import Automation
from sidebar_sync.models.execution import ContinuationSuggestion, ExecutionProgressEvent
from sidebar_sync.models.gateway import GatewayError, GatewayResponse
from sidebar_sync.models.notification import Notification, NotificationType
from sidebar_sync.models.recording import RecordingPreview, RecordingSession, RecordingStatus
from sidebar_sync.models.requests import (
    ContinuationRequest,
    EditAutomationRequest,
    SaveAutomationRequest,
    SaveRecordingRequest,
)
from sidebar_sync.models.result import ActionError, ErrorKind


class TestNotification:
    """Tests for Notification model."""

    def test_epoch_millis_parsed(self):
        notification = Notification.model_validate(
            {
                "id": "n1",
                "type": "monitor",
                "title": "Price drop",
                "message": "Item is cheaper",
                "created_at": 1772357400000,
            }
        )

        assert notification.type == NotificationType.MONITOR
        assert notification.created_at.year == 2026
        assert notification.is_unread

    def test_dismissed_returns_copy(self, notification_factory):
        notification = notification_factory("n1")
        at = datetime(2026, 3, 2, tzinfo=timezone.utc)

        dismissed = notification.dismissed(at)

        assert dismissed.dismissed_at == at
        assert notification.dismissed_at is None

    def test_dismissed_timestamp_never_changes(self, notification_factory):
        first = datetime(2026, 3, 2, tzinfo=timezone.utc)
        notification = notification_factory("n1", dismissed_at=first)

        assert notification.dismissed(datetime(2026, 3, 5, tzinfo=timezone.utc)).dismissed_at == first

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Notification.model_validate(
                {
                    "id": "n1",
                    "type": "promo",
                    "title": "t",
                    "message": "m",
                    "created_at": 1772357400000,
                }
            )


class TestSaveAutomationRequest:
    def test_strips_name(self):
        request = SaveAutomationRequest(pattern_id="p1", name="  Morning triage  ")

        assert request.name == "Morning triage"
        assert request.to_payload() == {"pattern_id": "p1", "name": "Morning triage"}

    def test_name_at_limit_accepted(self):
        assert len(SaveAutomationRequest(pattern_id="p1", name="a" * 100).name) == 100

    def test_name_over_limit_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            SaveAutomationRequest(pattern_id="p1", name="a" * 101)

        error = ActionError.from_validation(exc_info.value)
        assert error.kind == ErrorKind.VALIDATION
        assert error.message == "Name must be 100 characters or less"
        assert error.context == {"field": "name"}

    def test_description_limit(self):
        with pytest.raises(ValidationError):
            SaveAutomationRequest(pattern_id="p1", name="n", description="d" * 501)

    def test_blank_description_dropped(self):
        request = SaveAutomationRequest(pattern_id="p1", name="n", description="   ")

        assert request.description is None

    def test_empty_pattern_id_rejected(self):
        with pytest.raises(ValidationError):
            SaveAutomationRequest(pattern_id="", name="n")


class TestOtherRequests:
    def test_edit_payload(self):
        request = EditAutomationRequest(automation_id="a1", name="Renamed", description="New")

        assert request.to_payload() == {
            "automationId": "a1",
            "name": "Renamed",
            "description": "New",
        }

    def test_recording_payload(self):
        request = SaveRecordingRequest(
            name="Submit",
            actions=[{"type": "click", "timestamp": 1, "data": {"selector": "#go"}}],
        )

        payload = request.to_payload()

        assert payload["actions"] == [
            {"type": "click", "timestamp": 1, "data": {"selector": "#go"}}
        ]
        assert "description" not in payload

    @pytest.mark.parametrize("count", [1, 50, 100])
    def test_continuation_bounds_accepted(self, count):
        request = ContinuationRequest(pattern_id="p1", item_count=count)

        assert request.to_payload() == {"patternId": "p1", "itemCount": count}

    @pytest.mark.parametrize("count", [0, -3, 101])
    def test_continuation_bounds_rejected(self, count):
        with pytest.raises(ValidationError):
            ContinuationRequest(pattern_id="p1", item_count=count)


class TestActionError:
    def test_conflict_code_classified(self):
        response = GatewayResponse.fail("RECORDING_ACTIVE", "busy", tabId="t1")

        error = ActionError.from_response(response)

        assert error.kind == ErrorKind.CONFLICT
        assert error.context == {"tabId": "t1"}

    def test_other_codes_are_backend_errors(self):
        error = ActionError.from_response(GatewayResponse.fail("DB_ERROR", ""))

        assert error.kind == ErrorKind.BACKEND
        assert error.message == "Request failed"


class TestGatewayError:
    def test_flat_context_fields_collected(self):
        response = GatewayResponse.model_validate(
            {
                "success": False,
                "error": {
                    "code": "RECORDING_ACTIVE",
                    "message": "busy",
                    "tabId": "t1",
                    "tabTitle": "Inbox",
                },
            }
        )

        assert response.error.details == {"tabId": "t1", "tabTitle": "Inbox"}
        assert ActionError.from_response(response).context["tabTitle"] == "Inbox"

    def test_nested_details_still_accepted(self):
        error = GatewayError.model_validate(
            {"code": "X", "message": "m", "details": {"a": 1}, "b": 2}
        )

        assert error.details == {"a": 1, "b": 2}

    def test_plain_error_has_no_details(self):
        error = GatewayError.model_validate({"code": "DB_ERROR", "message": "locked"})

        assert error.details == {}


class TestRecordingModels:
    def test_session_defaults_idle(self):
        session = RecordingSession()

        assert session.is_recording is False
        assert session.status == RecordingStatus.STOPPED
        assert session.action_count == 0

    def test_negative_action_count_rejected(self):
        with pytest.raises(ValidationError):
            RecordingSession(action_count=-1)

    def test_preview_from_backend(self):
        preview = RecordingPreview.model_validate(
            {"actions": [{"type": "click", "timestamp": 5}], "tabId": "t1", "duration": 900}
        )

        assert preview.tab_id == "t1"
        assert preview.actions[0].type == "click"


class TestExecutionModels:
    def test_progress_needs_identity(self):
        with pytest.raises(ValidationError):
            ExecutionProgressEvent.model_validate({"current": 1, "total": 2})

    def test_to_progress(self):
        event = ExecutionProgressEvent.model_validate(
            {"automationId": "a1", "currentStep": 1, "totalSteps": 4, "stepDescription": "Go"}
        )

        progress = event.to_progress()

        assert progress.automation_id == "a1"
        assert progress.current_step == 1
        assert progress.total_steps == 4
        assert progress.step_description == "Go"

    def test_suggestion_needs_positive_estimate(self):
        with pytest.raises(ValidationError):
            ContinuationSuggestion.model_validate(
                {"patternId": "p1", "intentSummary": "x", "estimatedItems": 0}
            )


class TestAutomation:
    def test_camel_case_payload(self):
        automation = Automation.model_validate(
            {
                "id": "a1",
                "patternId": "p1",
                "name": "Triage",
                "patternType": "form",
                "executionCount": 2,
                "createdAt": "2026-03-01T09:30:00Z",
            }
        )

        assert automation.pattern_type.value == "form"
        assert automation.execution_count == 2
        assert automation.last_executed is None

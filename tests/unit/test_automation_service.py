"""Unit tests for AutomationLibrary."""

import pytest

from sidebar_sync.models.gateway import GatewayResponse
from sidebar_sync.models.result import ErrorKind
from sidebar_sync.services.automation_service import AutomationLibrary


def _automation(automation_id, name="Morning triage", execution_count=0):
    return {
        "id": automation_id,
        "patternId": f"pat-{automation_id}",
        "name": name,
        "description": "Open PRs then Linear",
        "patternType": "navigation",
        "patternData": {"sequence": [{"url": "https://github.com/pulls"}]},
        "executionCount": execution_count,
        "lastExecuted": None,
        "createdAt": 1772357400000,
    }


@pytest.fixture
def library(gateway):
    return AutomationLibrary(gateway)


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_list(self, library, gateway):
        gateway.automations_get_all.return_value = GatewayResponse.ok(
            [_automation("a1", execution_count=3), _automation("a2")]
        )

        result = await library.load()

        assert result.ok
        assert [a.id for a in library.automations] == ["a1", "a2"]
        assert library.get("a1").execution_count == 3
        assert library.loading is False

    @pytest.mark.asyncio
    async def test_skips_malformed_entries(self, library, gateway):
        gateway.automations_get_all.return_value = GatewayResponse.ok(
            [_automation("a1"), {"id": "broken"}]
        )

        await library.load()

        assert [a.id for a in library.automations] == ["a1"]

    @pytest.mark.asyncio
    async def test_failure_keeps_list(self, library, gateway):
        gateway.automations_get_all.return_value = GatewayResponse.ok([_automation("a1")])
        await library.load()
        gateway.automations_get_all.return_value = GatewayResponse.fail("DB_ERROR", "locked")

        result = await library.load()

        assert not result.ok
        assert [a.id for a in library.automations] == ["a1"]


class TestEdit:
    @pytest.mark.asyncio
    async def test_edits_and_reloads(self, library, gateway):
        result = await library.edit("a1", "Evening triage", "")

        assert result.ok
        gateway.automations_edit.assert_awaited_once_with(
            {"automationId": "a1", "name": "Evening triage"}
        )
        gateway.automations_get_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_validates_before_call(self, library, gateway):
        result = await library.edit("a1", "x" * 101)

        assert result.error.kind == ErrorKind.VALIDATION
        gateway.automations_edit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_does_not_reload(self, library, gateway):
        gateway.automations_edit.return_value = GatewayResponse.fail("NOT_FOUND", "gone")

        result = await library.edit("a1", "Name")

        assert not result.ok
        gateway.automations_get_all.assert_not_awaited()


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_after_confirmation(self, library, gateway):
        gateway.automations_get_all.return_value = GatewayResponse.ok(
            [_automation("a1"), _automation("a2")]
        )
        await library.load()

        result = await library.delete("a1")

        assert result.ok
        assert [a.id for a in library.automations] == ["a2"]
        gateway.automations_delete.assert_awaited_once_with("a1")

    @pytest.mark.asyncio
    async def test_failure_keeps_automation(self, library, gateway):
        gateway.automations_get_all.return_value = GatewayResponse.ok([_automation("a1")])
        await library.load()
        gateway.automations_delete.return_value = GatewayResponse.fail("DB_ERROR", "locked")

        result = await library.delete("a1")

        assert not result.ok
        assert library.get("a1") is not None


class TestRefiningSlot:
    def test_start_and_cancel(self, library):
        library.start_refinement("a1")
        assert library.refining == "a1"

        library.cancel_refinement()
        assert library.refining is None

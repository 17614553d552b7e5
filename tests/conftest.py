"""Pytest configuration and fixtures."""

import inspect
import os
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing the package
os.environ.setdefault("SIDEBAR_BACKEND_URL", "http://backend.test")
os.environ.setdefault("SIDEBAR_LOG_LEVEL", "DEBUG")

from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.gateway import GatewayResponse
from sidebar_sync.models.notification import Notification
from sidebar_sync.services.event_bus import EventBus

# Typed backend calls on the gateway (everything except transport plumbing)
GATEWAY_CALLS = [
    name
    for name, member in inspect.getmembers(BackendGateway, inspect.iscoroutinefunction)
    if not name.startswith("_") and name not in {"call", "close", "listen"}
]

CREATED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def gateway() -> AsyncMock:
    """Fake backend gateway where every call succeeds with no data by default."""
    mock = AsyncMock(spec=BackendGateway)
    for name in GATEWAY_CALLS:
        getattr(mock, name).return_value = GatewayResponse.ok()
    mock.notifications_get_all.return_value = GatewayResponse.ok([])
    mock.automations_get_all.return_value = GatewayResponse.ok([])
    mock.chat_get_messages.return_value = GatewayResponse.ok([])
    mock.tabs_get_active_tab_info.return_value = GatewayResponse.ok(None)
    return mock


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def pattern_payload() -> Callable[..., dict]:
    """Build a backend pattern payload (camelCase, as pushed by the detector)."""

    def _make(pattern_id: str = "pat-1", **overrides: Any) -> dict:
        payload = {
            "id": pattern_id,
            "type": "navigation",
            "patternData": {
                "sequence": [
                    {"url": "https://www.github.com/pulls"},
                    {"url": "https://linear.app/team/inbox"},
                ]
            },
            "confidence": 87.4,
            "occurrenceCount": 4,
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def notification_factory() -> Callable[..., Notification]:
    """Build a Notification, by default an unread pattern notification."""

    def _make(
        notification_id: str = "n-1",
        type: str = "pattern",
        data: Any = None,
        dismissed_at: Optional[datetime] = None,
        **overrides: Any,
    ) -> Notification:
        fields = {
            "id": notification_id,
            "type": type,
            "severity": "info",
            "title": "Pattern detected",
            "message": "You keep doing this",
            "data": data,
            "created_at": CREATED_AT,
            "dismissed_at": dismissed_at,
        }
        fields.update(overrides)
        return Notification.model_validate(fields)

    return _make

"""Active-tab poller, run as a cooperative background task."""

import asyncio
from typing import Optional

import structlog
from pydantic import ValidationError

from sidebar_sync.config import get_settings
from sidebar_sync.gateway import BackendGateway
from sidebar_sync.models.message import TabInfo

logger = structlog.get_logger(__name__)


class ActiveTabPoller:
    """Polls the backend for the active tab at a fixed interval."""

    def __init__(self, gateway: BackendGateway, interval: Optional[float] = None):
        self.gateway = gateway
        self.interval = (
            interval if interval is not None else get_settings().active_tab_poll_interval_seconds
        )
        self.active_tab: Optional[TabInfo] = None
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._running = False

    @property
    def current_tab_id(self) -> Optional[str]:
        return self.active_tab.id if self.active_tab is not None else None

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the polling loop as an asyncio background task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("active_tab_poller_started", interval_seconds=self.interval)

    async def stop(self):
        """Stop the polling loop and any poll still in flight."""
        self._running = False
        for task in (self._task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._inflight = None
        logger.info("active_tab_poller_stopped")

    async def _poll_loop(self):
        """Tick every interval; a tick is skipped while the last poll is still running."""
        while self._running:
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.create_task(self.poll_once())
            else:
                logger.debug("active_tab_poll_skipped")

            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break

    async def poll_once(self) -> Optional[TabInfo]:
        """Fetch the active tab once; failures keep the last known tab."""
        try:
            response = await self.gateway.tabs_get_active_tab_info()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("active_tab_poll_error", error=str(e), error_type=type(e).__name__)
            return self.active_tab

        if not response.success:
            logger.warning(
                "active_tab_poll_failed",
                error_code=response.error_code,
                error=response.error_message,
            )
            return self.active_tab

        if response.data is None:
            self.active_tab = None
            return None

        try:
            tab = TabInfo.model_validate(response.data)
        except ValidationError as e:
            logger.warning("active_tab_malformed", error_count=e.error_count())
            return self.active_tab

        if tab.id != self.current_tab_id:
            logger.debug("active_tab_changed", tab_id=tab.id)
        self.active_tab = tab
        return tab

"""Runner: mount the sidebar model and feed it backend push events."""

import asyncio

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from sidebar_sync.config import get_settings
from sidebar_sync.gateway import close_gateway, init_gateway
from sidebar_sync.services.logging_service import configure_logging, get_logger
from sidebar_sync.sidebar import SidebarModel


async def run() -> None:
    """Mount the model and forward push events until cancelled."""
    settings = get_settings()
    configure_logging(
        settings.log_level,
        json_output=settings.log_json,
        backend_url=settings.backend_url,
    )
    logger = get_logger("main")

    gateway = await init_gateway()
    model = SidebarModel(gateway)
    await model.mount()

    listener = asyncio.create_task(gateway.listen(model.bus))
    logger.info("sidebar_sync_running")
    try:
        await listener
    finally:
        if not listener.done():
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
        await model.unmount()
        await close_gateway()
        logger.info("sidebar_sync_stopped")


def main() -> None:
    """Console entry point."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

"""
Indexer main entry point.

Runs the sync coordinator and the HTTP API in one process until SIGINT or
SIGTERM.

Initialization is delegated to modular components in the
indexer/initialization/ directory.
"""

import asyncio
import signal
import sys
import warnings


# Suppress eth_utils network warnings about invalid ChainId
# Must be set BEFORE importing any modules that use eth_utils
warnings.filterwarnings(
    "ignore",
    message=".*does not have a valid ChainId.*",
    category=UserWarning,
)

from loguru import logger  # noqa: E402

from app.api import create_app, start_api_server  # noqa: E402
from app.config.settings import settings  # noqa: E402
from app.utils.exceptions import RpcUnavailable  # noqa: E402
from indexer.initialization.logging import setup_logging  # noqa: E402
from indexer.initialization.services import initialize_services  # noqa: E402
from indexer.initialization.shutdown import shutdown_handler  # noqa: E402


def _handle_sync_task_done(task: asyncio.Task) -> None:
    """Log a sync loop that ended with an error."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.opt(exception=exc).error(f"Sync loop crashed: {exc}")


async def main() -> None:
    """Initialize and run the indexer."""
    setup_logging(settings)

    services = await initialize_services(settings)

    if settings.sync_packages_on_start:
        try:
            await services.package_sync.sync_packages()
        except RpcUnavailable as e:
            logger.warning(f"Initial package sync failed: {e}")

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    runner = None
    sync_task = None
    try:
        if settings.api_enabled:
            app = create_app(
                services.context.store,
                coordinator=services.coordinator,
                package_sync=services.package_sync,
                prefix=settings.api_prefix,
            )
            runner = await start_api_server(app, settings.api_host, settings.api_port)

        sync_task = asyncio.create_task(services.coordinator.run(), name="sync-coordinator")
        sync_task.add_done_callback(_handle_sync_task_done)
        logger.info("Indexer started successfully")

        stop_waiter = asyncio.create_task(stop_requested.wait())
        await asyncio.wait({sync_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        stop_waiter.cancel()
    finally:
        await shutdown_handler(services, sync_task, runner)

    if sync_task.done() and not sync_task.cancelled() and sync_task.exception():
        raise sync_task.exception()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Indexer stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Indexer crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()

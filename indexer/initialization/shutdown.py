"""
Indexer Initialization - Shutdown Module.

Module: shutdown.py
Handles graceful shutdown of the indexer.
Stops the sync loop, the API server and closes connections.
"""

import asyncio

from aiohttp import web
from loguru import logger

from app.api import stop_api_server
from indexer.initialization.services import IndexerServices

SYNC_STOP_TIMEOUT = 60


async def shutdown_handler(
    services: IndexerServices,
    sync_task: asyncio.Task | None,
    runner: web.AppRunner | None,
) -> None:
    """
    Handle graceful shutdown.

    The in-flight batch is allowed to finish before connections close.
    """
    logger.info("Graceful shutdown initiated...")

    await services.coordinator.stop()
    if sync_task is not None and not sync_task.done():
        _, pending = await asyncio.wait({sync_task}, timeout=SYNC_STOP_TIMEOUT)
        if pending:
            logger.warning(f"Sync loop did not stop within {SYNC_STOP_TIMEOUT}s, cancelling")
            sync_task.cancel()

    if runner is not None:
        await stop_api_server(runner)

    services.context.chain.close()
    logger.info("RPC executor closed")

    await services.engine.dispose()
    logger.info("Database connections closed")

    logger.info("Graceful shutdown complete")

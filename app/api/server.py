"""
HTTP API server.

aiohttp application serving the Mirror Store alongside the sync loop.
"""

import asyncio

from aiohttp import web
from loguru import logger

from app.api.routes import (
    COORDINATOR_KEY,
    PACKAGE_SYNC_KEY,
    STORE_KEY,
    error_middleware,
    setup_routes,
)
from app.services.mirror_store import MirrorStore
from app.services.package_sync_service import PackageSyncService
from app.services.sync_coordinator import SyncCoordinator


def create_app(
    store: MirrorStore,
    coordinator: SyncCoordinator | None = None,
    package_sync: PackageSyncService | None = None,
    prefix: str = "/api",
) -> web.Application:
    """
    Build the API application.

    Args:
        store: Mirror Store to serve
        coordinator: Running coordinator (hard refresh, status); optional
        package_sync: Catalog sync service; optional
        prefix: Route prefix

    Returns:
        Configured application
    """
    app = web.Application(middlewares=[error_middleware])
    app[STORE_KEY] = store
    if coordinator is not None:
        app[COORDINATOR_KEY] = coordinator
    if package_sync is not None:
        app[PACKAGE_SYNC_KEY] = package_sync
    setup_routes(app, prefix)
    return app


async def start_api_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 5000,
) -> web.AppRunner:
    """
    Start serving the API.

    Args:
        app: Application from create_app
        host: Host to bind to
        port: Port to bind to

    Returns:
        AppRunner for cleanup
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"[API] Listening on http://{host}:{port}")
    return runner


async def stop_api_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop the API server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("[API] Stopping server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("[API] Server stopped")
    except TimeoutError:
        logger.warning(f"[API] Server cleanup timed out after {timeout}s")

"""
Indexer Initialization - Services Module.

Module: services.py
Builds the database engine, chain client, Mirror Store and the sync
context shared by the coordinator and the API.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config.database import create_engine, create_schema, create_session_maker
from app.config.settings import Settings
from app.services.blockchain.chain_client import ChainClient
from app.services.mirror_store import MirrorStore
from app.services.package_sync_service import PackageSyncService
from app.services.sync_coordinator import SyncContext, SyncCoordinator
from app.utils.security import mask_address


@dataclass
class IndexerServices:
    """Everything main() starts and later shuts down."""

    engine: AsyncEngine
    context: SyncContext
    coordinator: SyncCoordinator
    package_sync: PackageSyncService


def validate_environment(settings: Settings) -> None:
    """Log configuration problems that do not prevent startup."""
    if not settings.get_rpc_http_urls():
        logger.error("RPC_HTTP_URLS is not configured")
    if not settings.push_available:
        logger.warning("RPC_WS_URL not set; live sync will use polling only")
    if settings.sync_confirmations == 0:
        logger.info("SYNC_CONFIRMATIONS=0: catch-up follows the chain head directly")


async def initialize_services(settings: Settings) -> IndexerServices:
    """
    Build all runtime collaborators from settings.

    Creates missing tables before returning.
    """
    validate_environment(settings)

    engine = create_engine(settings)
    await create_schema(engine)
    logger.info("Database schema ready")

    store = MirrorStore(create_session_maker(engine), settings.contract_address)
    chain = ChainClient.from_settings(settings)
    context = SyncContext(settings=settings, chain=chain, store=store)

    logger.info(
        f"Indexing contract {mask_address(settings.contract_address)} "
        f"from genesis block {settings.genesis_block}"
    )
    return IndexerServices(
        engine=engine,
        context=context,
        coordinator=SyncCoordinator(context),
        package_sync=PackageSyncService(chain, store),
    )

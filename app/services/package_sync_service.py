"""
Package sync service.

Administrative refresh of the node package catalog straight from the
contract's view functions, independent of the event stream.
"""

from decimal import Decimal
from typing import Any

from loguru import logger

from app.services.blockchain.chain_client import ChainClient
from app.services.event_decoder.decoder import scale_token_amount
from app.services.mirror_store import MirrorStore
from app.utils.exceptions import RpcUnavailable


class PackageSyncService:
    """Read nodePackages(i) for every package id and upsert the catalog."""

    def __init__(self, chain: ChainClient, store: MirrorStore) -> None:
        self.chain = chain
        self.store = store

    async def sync_packages(self) -> dict[str, Any]:
        """
        Sync the whole catalog.

        Package ids run from 1 to nodePackageCount().

        Returns:
            Dict with success flag, number synced and failed package ids
        """
        count = await self.chain.read_package_count()
        logger.info(f"[PackageSync] Contract reports {count} packages")

        synced = 0
        failed: list[int] = []
        for package_id in range(1, count + 1):
            try:
                data = await self.chain.read_package(package_id)
            except RpcUnavailable as e:
                logger.warning(f"[PackageSync] Cannot read package {package_id}: {e}")
                failed.append(package_id)
                continue

            await self.store.upsert_package(
                package_id,
                name=data["name"],
                price=Decimal(scale_token_amount(data["price"])),
                duration=data["duration"],
                roi_percentage=data["roiPercentage"],
                is_active=data["isActive"],
            )
            synced += 1

        if failed:
            logger.warning(f"[PackageSync] Synced {synced}/{count}, failed: {failed}")
        else:
            logger.success(f"[PackageSync] Synced {synced} packages")

        return {"success": not failed, "synced": synced, "total": count, "failed": failed}

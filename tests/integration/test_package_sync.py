"""Integration tests for the package catalog sync."""

from decimal import Decimal

import pytest

from app.services.package_sync_service import PackageSyncService
from factories import WEI, FakeChain


def package(name: str, price_wei: int, active: bool = True) -> dict:
    return {"name": name, "price": price_wei, "duration": 30, "roiPercentage": 10, "isActive": active}


class TestPackageSyncService:
    """Tests for reading nodePackages into the mirror."""

    @pytest.mark.asyncio
    async def test_scales_price_and_upserts(self, store):
        chain = FakeChain()
        chain.packages = {1: package("Starter", 15 * WEI // 10)}

        result = await PackageSyncService(chain, store).sync_packages()

        assert result == {"success": True, "synced": 1, "total": 1, "failed": []}
        stored = await store.get_package(1)
        assert stored.price == Decimal("1.5")
        assert stored.is_active is True

    @pytest.mark.asyncio
    async def test_resync_overwrites_catalog(self, store):
        chain = FakeChain()
        chain.packages = {1: package("Starter", 100 * WEI)}
        service = PackageSyncService(chain, store)
        await service.sync_packages()

        chain.packages = {1: package("Starter v2", 120 * WEI, active=False)}
        await service.sync_packages()

        stored = await store.get_package(1)
        assert stored.name == "Starter v2"
        assert stored.price == Decimal("120")
        assert stored.is_active is False
        assert len(await store.list_packages()) == 1

    @pytest.mark.asyncio
    async def test_unreadable_packages_reported(self, store):
        chain = FakeChain()
        chain.packages = {1: package("Starter", 100 * WEI), 3: package("Elite", 900 * WEI)}
        chain.broken_packages = {2}

        result = await PackageSyncService(chain, store).sync_packages()

        assert result["success"] is False
        assert result["synced"] == 2
        assert result["total"] == 3
        assert result["failed"] == [2]
        assert await store.get_package(2) is None

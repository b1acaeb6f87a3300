"""
Node package repository.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.node_package import NodePackage
from app.repositories.base import BaseRepository


class NodePackageRepository(BaseRepository[NodePackage]):
    """Repository for NodePackage model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(NodePackage, session)

    async def get_by_package_id(self, package_id: int) -> NodePackage | None:
        """Get catalog entry by contract package id."""
        return await self.get_by(package_id=package_id)

    async def upsert(self, package_id: int, **data: Any) -> NodePackage:
        """
        Create or update a catalog entry.

        Args:
            package_id: Contract package id
            **data: Column values to set

        Returns:
            Stored package
        """
        package = await self.get_by_package_id(package_id)
        if package is None:
            return await self.create(package_id=package_id, **data)

        for key, value in data.items():
            setattr(package, key, value)
        await self.session.flush()
        return package

    async def list_ordered(self) -> list[NodePackage]:
        """Get all packages ordered by package id."""
        result = await self.session.execute(
            select(NodePackage).order_by(NodePackage.package_id)
        )
        return list(result.scalars().all())

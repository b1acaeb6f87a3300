"""
User repository.

Data access layer for mirrored contract users.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(User, session)

    async def get_by_address(self, address: str) -> User | None:
        """
        Get user by wallet address.

        Args:
            address: Wallet address (any case)

        Returns:
            User or None
        """
        return await self.get_by(address=address.lower())

    async def get_or_create(
        self, address: str, created_at: datetime | None = None
    ) -> tuple[User, bool]:
        """
        Get user by address, creating an empty one if absent.

        Args:
            address: Wallet address (any case)
            created_at: First-seen time for a new row

        Returns:
            Tuple of (user, created)
        """
        user = await self.get_by_address(address)
        if user:
            return user, False

        data = {"address": address.lower()}
        if created_at is not None:
            data["created_at"] = created_at
        return await self.create(**data), True

    async def list_recent(
        self, page: int = 1, per_page: int = 10
    ) -> tuple[list[User], int]:
        """
        Page through users, newest first.

        Returns:
            Tuple of (users, total_count)
        """
        total = await self.count()
        stmt = (
            select(User)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_created_at_values(self) -> list[datetime]:
        """Get creation time of every user (for monthly analytics)."""
        result = await self.session.execute(select(User.created_at))
        return list(result.scalars().all())

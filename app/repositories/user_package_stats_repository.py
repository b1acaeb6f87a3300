"""
User package stats repository.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user_package_stats import UserPackageStats
from app.repositories.base import BaseRepository


class UserPackageStatsRepository(BaseRepository[UserPackageStats]):
    """Repository for UserPackageStats model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(UserPackageStats, session)

    async def get_or_create(
        self, user_id: int, package_id: int
    ) -> tuple[UserPackageStats, bool]:
        """
        Get the stats row for (user, package), creating it if absent.

        Returns:
            Tuple of (stats, created)
        """
        stats = await self.get_by(user_id=user_id, package_id=package_id)
        if stats:
            return stats, False
        return await self.create(user_id=user_id, package_id=package_id), True

    async def get_for_user(self, user_id: int) -> list[UserPackageStats]:
        """Get all package rows of a user ordered by package."""
        stmt = (
            select(UserPackageStats)
            .where(UserPackageStats.user_id == user_id)
            .order_by(UserPackageStats.package_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_package_totals(self, package_id: int) -> dict[str, int | Decimal]:
        """
        Sum counters across all users of a package.

        Args:
            package_id: Package ID

        Returns:
            Dict of summed counters (zeros when the package has no rows)
        """
        stmt = select(
            func.coalesce(func.sum(UserPackageStats.referral_count), 0),
            func.coalesce(func.sum(UserPackageStats.total_rewards), 0),
            func.coalesce(func.sum(UserPackageStats.ascension_bonus_referrals), 0),
            func.coalesce(func.sum(UserPackageStats.ascension_bonus_sales_total), 0),
            func.coalesce(func.sum(UserPackageStats.ascension_bonus_rewards_claimed), 0),
        ).where(UserPackageStats.package_id == package_id)
        row = (await self.session.execute(stmt)).one()
        return {
            "total_referrals": int(row[0]),
            "total_rewards": Decimal(str(row[1])),
            "ascension_bonus_referrals": int(row[2]),
            "ascension_bonus_sales_total": Decimal(str(row[3])),
            "ascension_bonus_rewards_claimed": Decimal(str(row[4])),
        }

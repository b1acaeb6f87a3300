"""
User package stats model.

Per-user, per-package referral and ascension bonus counters.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.types import BigMoneyType

if TYPE_CHECKING:
    from app.models.user import User


class UserPackageStats(Base):
    """Package-scoped counters for one user."""

    __tablename__ = "user_package_stats"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "package_id", name="uq_user_package_stats_user_package"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    package_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )

    referral_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_rewards: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    # Signed sum of reward deltas; total_rewards is this floored at zero
    net_rewards: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    ascension_bonus_referrals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    ascension_bonus_sales_total: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    ascension_bonus_rewards_claimed: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="package_stats")

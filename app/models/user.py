"""
User model.

Mirrors a contract participant identified by wallet address.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.types import BigMoneyType

if TYPE_CHECKING:
    from app.models.user_package_stats import UserPackageStats


class User(Base):
    """User model - aggregates derived from contract events."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'total_rewards >= 0', name='check_user_total_rewards_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Lowercase 0x address
    address: Mapped[str] = mapped_column(
        String(42), unique=True, index=True, nullable=False
    )

    total_referrals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_rewards: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    # Signed sum of reward deltas; total_rewards is this floored at zero
    net_rewards: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    is_registered: Mapped[bool] = mapped_column(
        default=False, nullable=False
    )

    # Ascension bonus (latest values reported by the contract)
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

    package_stats: Mapped[list["UserPackageStats"]] = relationship(
        "UserPackageStats",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserPackageStats.package_id",
    )

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, address={self.address}, "
            f"referrals={self.total_referrals}, rewards={self.total_rewards})>"
        )

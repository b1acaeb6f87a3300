"""
Contract event model.

Append-only record of every processed contract log.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import BigMoneyType


class ContractEvent(Base):
    """
    Immutable event record.

    Deduplicated on (transaction_hash, block_number, log_index,
    event_type, user_address) so replays are no-ops.
    """

    __tablename__ = "contract_events"
    __table_args__ = (
        UniqueConstraint(
            "transaction_hash",
            "block_number",
            "log_index",
            "event_type",
            "user_address",
            name="uq_contract_events_natural_key",
        ),
        Index("ix_contract_events_type", "event_type"),
        Index("ix_contract_events_user", "user_address"),
        Index("ix_contract_events_package", "package_id"),
        Index("ix_contract_events_block", "block_number"),
        Index("ix_contract_events_timestamp", "timestamp"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)

    # Subject ("" for contract-level events)
    user_address: Mapped[str] = mapped_column(
        String(42), nullable=False, default=""
    )
    package_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount: Mapped[Decimal] = mapped_column(
        BigMoneyType, nullable=False, default=Decimal("0")
    )
    referrer_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True
    )

    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # JSON object with event-specific fields
    event_data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ContractEvent(id={self.id}, type={self.event_type}, "
            f"block={self.block_number}, tx={self.transaction_hash[:10]})>"
        )

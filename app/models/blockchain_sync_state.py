"""
Blockchain Sync State model.

Tracks the synchronization checkpoint of the event indexer.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class BlockchainSyncState(Base):
    """
    Tracks blockchain synchronization state.

    Used to:
    - Resume sync after restart from last_synced_block + 1
    - Track sync progress per contract stream
    - Keep the last sync error for operators
    """

    __tablename__ = "sync_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Contract address the checkpoint belongs to
    stream_key: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )

    # Sync range
    first_synced_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    last_synced_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    # Statistics
    total_events: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    skipped_logs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    # Full sync status
    full_sync_completed: Mapped[bool] = mapped_column(
        default=False, nullable=False
    )
    full_sync_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    error_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
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

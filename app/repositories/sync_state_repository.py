"""
Sync state repository.

Data access for the persisted sync checkpoint.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.blockchain_sync_state import BlockchainSyncState
from app.repositories.base import BaseRepository


class SyncStateRepository(BaseRepository[BlockchainSyncState]):
    """Repository for BlockchainSyncState model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(BlockchainSyncState, session)

    async def get_for_stream(self, stream_key: str) -> BlockchainSyncState | None:
        """Get checkpoint row for a contract stream."""
        return await self.get_by(stream_key=stream_key.lower())

    async def get_or_create(
        self, stream_key: str, start_block: int
    ) -> BlockchainSyncState:
        """
        Get checkpoint row, creating it at start_block if missing.

        Args:
            stream_key: Contract address
            start_block: Initial checkpoint value

        Returns:
            Sync state row
        """
        state = await self.get_for_stream(stream_key)
        if state:
            return state
        return await self.create(
            stream_key=stream_key.lower(),
            first_synced_block=start_block,
            last_synced_block=start_block,
        )

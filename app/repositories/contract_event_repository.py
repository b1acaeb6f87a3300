"""
Contract event repository.

Data access layer for the append-only event log.
"""

from collections.abc import AsyncIterator

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.contract_event import ContractEvent
from app.repositories.base import BaseRepository


class ContractEventRepository(BaseRepository[ContractEvent]):
    """Repository for ContractEvent model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(ContractEvent, session)

    async def natural_key_exists(
        self,
        transaction_hash: str,
        block_number: int,
        log_index: int,
        event_type: str,
        user_address: str,
    ) -> bool:
        """Check whether an event with this natural key is already stored."""
        stmt = select(ContractEvent.id).where(
            ContractEvent.transaction_hash == transaction_hash,
            ContractEvent.block_number == block_number,
            ContractEvent.log_index == log_index,
            ContractEvent.event_type == event_type,
            ContractEvent.user_address == user_address,
        ).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_latest_block(self) -> int | None:
        """Get highest block number with a stored event."""
        result = await self.session.execute(select(func.max(ContractEvent.block_number)))
        return result.scalar()

    async def list_recent(
        self,
        page: int = 1,
        per_page: int = 100,
        event_type: str | None = None,
        user_address: str | None = None,
    ) -> tuple[list[ContractEvent], int]:
        """
        Page through events, newest block first.

        Args:
            page: Page number (1-indexed)
            per_page: Items per page
            event_type: Optional event type filter
            user_address: Optional subject filter

        Returns:
            Tuple of (events, total_count)
        """
        filters = []
        if event_type:
            filters.append(ContractEvent.event_type == event_type)
        if user_address is not None:
            filters.append(ContractEvent.user_address == user_address.lower())

        count_stmt = select(func.count()).select_from(ContractEvent).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(ContractEvent)
            .where(*filters)
            .order_by(
                ContractEvent.block_number.desc(),
                ContractEvent.log_index.desc(),
                ContractEvent.id.desc(),
            )
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def count_by_type(self) -> list[tuple[str, int]]:
        """Count events per type, most frequent first."""
        count_col = func.count(ContractEvent.id)
        stmt = (
            select(ContractEvent.event_type, count_col)
            .group_by(ContractEvent.event_type)
            .order_by(count_col.desc(), ContractEvent.event_type)
        )
        result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def stream_in_chain_order(
        self, batch_size: int = 1000
    ) -> AsyncIterator[ContractEvent]:
        """
        Iterate over all events in (block, log index) order.

        Args:
            batch_size: Rows fetched per round trip
        """
        last_id_seen: tuple[int, int, int] | None = None
        while True:
            stmt = select(ContractEvent).order_by(
                ContractEvent.block_number,
                ContractEvent.log_index,
                ContractEvent.id,
            ).limit(batch_size)
            if last_id_seen is not None:
                block, log_index, row_id = last_id_seen
                stmt = stmt.where(
                    (ContractEvent.block_number > block)
                    | (
                        (ContractEvent.block_number == block)
                        & (ContractEvent.log_index > log_index)
                    )
                    | (
                        (ContractEvent.block_number == block)
                        & (ContractEvent.log_index == log_index)
                        & (ContractEvent.id > row_id)
                    )
                )
            rows = list((await self.session.execute(stmt)).scalars().all())
            if not rows:
                return
            for row in rows:
                yield row
            tail = rows[-1]
            last_id_seen = (tail.block_number, tail.log_index, tail.id)

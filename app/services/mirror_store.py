"""
Mirror Store.

Off-chain replica of contract-derived state: users and their aggregates,
per-package stats, the append-only event log, the package catalog and the
sync checkpoint. Every write runs in its own transaction.
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.blockchain_sync_state import BlockchainSyncState
from app.models.contract_event import ContractEvent
from app.models.node_package import NodePackage
from app.models.user import User
from app.models.user_package_stats import UserPackageStats
from app.repositories.contract_event_repository import ContractEventRepository
from app.repositories.node_package_repository import NodePackageRepository
from app.repositories.sync_state_repository import SyncStateRepository
from app.repositories.user_package_stats_repository import UserPackageStatsRepository
from app.repositories.user_repository import UserRepository
from app.services.event_processor.replay import deltas_for, deltas_from_record
from app.services.event_processor.types import (
    AdjustRewards,
    AggregateDelta,
    EnsurePackageStats,
    EnsureUser,
    EventRecordData,
    ProcessedEvent,
    SetAscensionCounters,
    SetPackageReferralCount,
    SetReferralCount,
    UpsertPackage,
)
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import PersistenceError
from app.utils.security import mask_address

ZERO = Decimal("0")

USER_FIELDS = frozenset({
    "total_referrals",
    "total_rewards",
    "is_registered",
    "ascension_bonus_referrals",
    "ascension_bonus_sales_total",
    "ascension_bonus_rewards_claimed",
})
PACKAGE_STATS_FIELDS = frozenset({
    "referral_count",
    "total_rewards",
    "ascension_bonus_referrals",
    "ascension_bonus_sales_total",
    "ascension_bonus_rewards_claimed",
})
PACKAGE_FIELDS = frozenset({"name", "price", "duration", "roi_percentage", "is_active"})
_MONEY_FIELDS = frozenset({
    "total_rewards",
    "ascension_bonus_sales_total",
    "ascension_bonus_rewards_claimed",
    "price",
})


def _clamp(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def _coerce(field: str, value: Any) -> Any:
    """Money columns as Decimal; rewards and totals never negative."""
    if field in _MONEY_FIELDS:
        return _clamp(Decimal(str(value)))
    return value


def _add_rewards(row: User | UserPackageStats, amount: Decimal) -> None:
    """Accumulate the signed net and floor the visible total once over it."""
    row.net_rewards = (row.net_rewards or ZERO) + amount
    row.total_rewards = _clamp(row.net_rewards)


def _set_rewards(row: User | UserPackageStats, fields: dict[str, Any]) -> None:
    """An admin-set total also becomes the base for later deltas."""
    if "total_rewards" in fields:
        row.net_rewards = row.total_rewards


def _check_fields(fields: dict[str, Any], allowed: frozenset[str], entity: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {entity} fields: {', '.join(sorted(unknown))}")


class _DeltaApplier:
    """Apply aggregate deltas inside one session, caching looked-up rows."""

    def __init__(self, session: AsyncSession, seen_at: datetime | None = None) -> None:
        self.seen_at = seen_at
        self.users = UserRepository(session)
        self.stats = UserPackageStatsRepository(session)
        self.packages = NodePackageRepository(session)
        self._user_cache: dict[str, User] = {}
        self._stats_cache: dict[tuple[str, int], UserPackageStats] = {}

    async def user(self, address: str) -> User:
        address = address.lower()
        user = self._user_cache.get(address)
        if user is None:
            user, created = await self.users.get_or_create(address, created_at=self.seen_at)
            if created:
                logger.debug(f"[MirrorStore] New user {mask_address(address)}")
            self._user_cache[address] = user
        return user

    async def package_stats(self, address: str, package_id: int) -> UserPackageStats:
        key = (address.lower(), package_id)
        stats = self._stats_cache.get(key)
        if stats is None:
            user = await self.user(address)
            stats, _ = await self.stats.get_or_create(user.id, package_id)
            self._stats_cache[key] = stats
        return stats

    async def apply(self, delta: AggregateDelta) -> None:
        if isinstance(delta, UpsertPackage):
            await self.packages.upsert(
                delta.package_id,
                name=delta.name,
                price=delta.price,
                duration=delta.duration,
                roi_percentage=delta.roi_percentage,
                is_active=delta.is_active,
            )
            return

        if not delta.address:
            return

        if isinstance(delta, EnsureUser):
            user = await self.user(delta.address)
            if delta.registered:
                user.is_registered = True
        elif isinstance(delta, AdjustRewards):
            _add_rewards(await self.user(delta.address), delta.amount)
            if delta.package_id is not None:
                _add_rewards(
                    await self.package_stats(delta.address, delta.package_id), delta.amount
                )
        elif isinstance(delta, SetReferralCount):
            user = await self.user(delta.address)
            user.total_referrals = max(user.total_referrals, delta.total)
        elif isinstance(delta, SetPackageReferralCount):
            stats = await self.package_stats(delta.address, delta.package_id)
            stats.referral_count = max(stats.referral_count, delta.count)
        elif isinstance(delta, EnsurePackageStats):
            await self.package_stats(delta.address, delta.package_id)
        elif isinstance(delta, SetAscensionCounters):
            stats = await self.package_stats(delta.address, delta.package_id)
            user = await self.user(delta.address)
            for row in (stats, user):
                row.ascension_bonus_referrals = delta.referrals
                row.ascension_bonus_sales_total = delta.sales_total
                row.ascension_bonus_rewards_claimed = delta.rewards_claimed
        else:
            raise TypeError(f"Unsupported delta: {delta!r}")

    @property
    def users_touched(self) -> int:
        return len(self._user_cache)

    async def flush(self) -> None:
        await self.users.session.flush()


class MirrorStore:
    """Persistence for the indexer and read side for the HTTP API."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        stream_key: str,
    ) -> None:
        """
        Initialize store.

        Args:
            session_maker: Async session factory
            stream_key: Contract address owning the checkpoint
        """
        self._session_maker = session_maker
        self.stream_key = stream_key.lower()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session with a transaction; database errors become PersistenceError."""
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"[MirrorStore] {operation} failed: {type(e).__name__}: {e}")
            raise PersistenceError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_user(self, address: str, **fields: Any) -> User:
        """
        Create user if absent and merge the given fields.

        Args:
            address: Wallet address (any case)
            **fields: Subset of USER_FIELDS

        Returns:
            Stored user

        Raises:
            ValueError: Unknown field name
        """
        _check_fields(fields, USER_FIELDS, "user")
        async with self._transaction("upsert_user") as session:
            user, _ = await UserRepository(session).get_or_create(address)
            for field, value in fields.items():
                setattr(user, field, _coerce(field, value))
            _set_rewards(user, fields)
            await session.flush()
            return user

    async def append_event(self, record: EventRecordData) -> bool:
        """
        Append an event record without touching aggregates.

        Returns:
            True if inserted, False if the natural key already existed
        """
        async with self._transaction("append_event") as session:
            return await self._insert_event(session, record)

    async def apply_processed(self, processed: ProcessedEvent) -> bool:
        """
        Append the record and apply its deltas in one transaction.

        Deltas are applied only when the record is new, so replaying a
        log leaves aggregates unchanged.

        Returns:
            True if the event was new
        """
        record = processed.record
        async with self._transaction("apply_event") as session:
            if not await self._insert_event(session, record):
                return False
            applier = _DeltaApplier(session, seen_at=record.timestamp)
            for delta in processed.deltas:
                await applier.apply(delta)
            await applier.flush()
        return True

    async def apply_record(self, record: EventRecordData) -> bool:
        """Append an externally supplied record with its derived deltas."""
        return await self.apply_processed(
            ProcessedEvent(record=record, deltas=tuple(deltas_for(record)))
        )

    async def _insert_event(self, session: AsyncSession, record: EventRecordData) -> bool:
        repo = ContractEventRepository(session)
        if await repo.natural_key_exists(*record.natural_key):
            return False
        await repo.create(
            event_type=record.event_type,
            user_address=record.user_address,
            package_id=record.package_id,
            amount=record.amount,
            referrer_address=record.referrer_address,
            transaction_hash=record.transaction_hash,
            block_number=record.block_number,
            log_index=record.log_index,
            timestamp=record.timestamp,
            event_data=json.dumps(record.payload, sort_keys=True, default=str),
        )
        return True

    async def upsert_package(self, package_id: int, **fields: Any) -> NodePackage:
        """Create or update a catalog entry (admin or contract sync)."""
        _check_fields(fields, PACKAGE_FIELDS, "package")
        async with self._transaction("upsert_package") as session:
            return await NodePackageRepository(session).upsert(
                package_id, **{k: _coerce(k, v) for k, v in fields.items()}
            )

    async def upsert_user_package_stats(
        self, address: str, package_id: int, **fields: Any
    ) -> UserPackageStats:
        """Create or update one (user, package) stats row."""
        _check_fields(fields, PACKAGE_STATS_FIELDS, "package stats")
        async with self._transaction("upsert_user_package_stats") as session:
            applier = _DeltaApplier(session)
            stats = await applier.package_stats(address, package_id)
            for field, value in fields.items():
                setattr(stats, field, _coerce(field, value))
            _set_rewards(stats, fields)
            await session.flush()
            return stats

    async def clear_all(self) -> None:
        """Delete every mirrored row, including the checkpoint."""
        async with self._transaction("clear_all") as session:
            for repo in (
                UserPackageStatsRepository(session),
                UserRepository(session),
                ContractEventRepository(session),
                NodePackageRepository(session),
                SyncStateRepository(session),
            ):
                deleted = await repo.delete_all()
                logger.debug(
                    f"[MirrorStore] Cleared {deleted} rows from {repo.model.__tablename__}"
                )
        logger.warning("[MirrorStore] All mirrored data cleared")

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------

    async def get_checkpoint(self) -> int | None:
        """Highest fully processed block, or None before the first sync."""
        async with self._transaction("get_checkpoint") as session:
            state = await SyncStateRepository(session).get_for_stream(self.stream_key)
            return state.last_synced_block if state else None

    async def set_checkpoint(
        self,
        block_number: int,
        events_added: int = 0,
        skipped_logs: int = 0,
    ) -> None:
        """
        Persist the checkpoint. Callers write it after the batch's events.

        Args:
            block_number: Highest fully processed block
            events_added: New events in the batch (statistics)
            skipped_logs: Logs skipped in the batch (statistics)
        """
        async with self._transaction("set_checkpoint") as session:
            state = await SyncStateRepository(session).get_or_create(
                self.stream_key, block_number
            )
            state.last_synced_block = block_number
            state.total_events += events_added
            state.skipped_logs += skipped_logs
            state.last_error = None

    async def mark_caught_up(self) -> None:
        """Flag the first completed catch-up."""
        async with self._transaction("mark_caught_up") as session:
            state = await SyncStateRepository(session).get_for_stream(self.stream_key)
            if state and not state.full_sync_completed:
                state.full_sync_completed = True
                state.full_sync_completed_at = utc_now()

    async def record_sync_error(self, message: str) -> None:
        """Store the last sync error on the checkpoint row, if present."""
        async with self._transaction("record_sync_error") as session:
            state = await SyncStateRepository(session).get_for_stream(self.stream_key)
            if state:
                state.last_error = message[:2000]
                state.error_count += 1

    async def get_sync_state(self) -> BlockchainSyncState | None:
        """Checkpoint row with statistics."""
        async with self._transaction("get_sync_state") as session:
            return await SyncStateRepository(session).get_for_stream(self.stream_key)

    async def latest_event_block(self) -> int | None:
        """Highest block with a stored event."""
        async with self._transaction("latest_event_block") as session:
            return await ContractEventRepository(session).get_latest_block()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_users(self, page: int = 1, limit: int = 10) -> tuple[list[User], int]:
        """Paginated users, newest first."""
        async with self._transaction("list_users") as session:
            return await UserRepository(session).list_recent(page, limit)

    async def get_user(
        self, address: str
    ) -> tuple[User, list[UserPackageStats]] | None:
        """User with package stats, or None."""
        async with self._transaction("get_user") as session:
            user = await UserRepository(session).get_by_address(address)
            if user is None:
                return None
            stats = await UserPackageStatsRepository(session).get_for_user(user.id)
            return user, stats

    async def list_events(
        self, page: int = 1, limit: int = 100, event_type: str | None = None
    ) -> tuple[list[ContractEvent], int]:
        """Paginated events, newest first."""
        async with self._transaction("list_events") as session:
            return await ContractEventRepository(session).list_recent(
                page, limit, event_type=event_type
            )

    async def events_by_user(
        self, address: str, page: int = 1, limit: int = 100
    ) -> tuple[list[ContractEvent], int]:
        """Paginated events whose subject is the address."""
        async with self._transaction("events_by_user") as session:
            return await ContractEventRepository(session).list_recent(
                page, limit, user_address=address
            )

    async def events_summary(self) -> dict[str, Any]:
        """Event totals per type plus user count."""
        async with self._transaction("events_summary") as session:
            by_type = await ContractEventRepository(session).count_by_type()
            total_users = await UserRepository(session).count()
        return {
            "totalEvents": sum(count for _, count in by_type),
            "totalUsers": total_users,
            "eventTypes": [
                {"eventType": event_type, "count": count}
                for event_type, count in by_type
            ],
        }

    async def list_packages(self) -> list[NodePackage]:
        """Catalog ordered by package id."""
        async with self._transaction("list_packages") as session:
            return await NodePackageRepository(session).list_ordered()

    async def get_package(self, package_id: int) -> NodePackage | None:
        async with self._transaction("get_package") as session:
            return await NodePackageRepository(session).get_by_package_id(package_id)

    async def list_user_package_stats(
        self, address: str | None = None
    ) -> list[tuple[str, UserPackageStats]]:
        """(address, stats) pairs, optionally for one user."""
        async with self._transaction("list_user_package_stats") as session:
            stmt = (
                select(User.address, UserPackageStats)
                .join(User, User.id == UserPackageStats.user_id)
                .order_by(User.address, UserPackageStats.package_id)
            )
            if address:
                stmt = stmt.where(User.address == address.lower())
            result = await session.execute(stmt)
            return [(row[0], row[1]) for row in result.all()]

    async def monthly_analytics(self) -> list[dict[str, Any]]:
        """New users per calendar month (YYYY-MM), oldest first."""
        async with self._transaction("monthly_analytics") as session:
            created = await UserRepository(session).get_created_at_values()

        months: dict[str, int] = {}
        for value in created:
            month = value.strftime("%Y-%m")
            months[month] = months.get(month, 0) + 1
        return [
            {"month": month, "user_count": months[month]}
            for month in sorted(months)
        ]

    async def package_ascension_analytics(self, package_id: int) -> dict[str, Any]:
        """Summed referral and ascension counters of one package."""
        async with self._transaction("package_ascension_analytics") as session:
            totals = await UserPackageStatsRepository(session).get_package_totals(package_id)
        return {"package_id": package_id, **totals}

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def rebuild_aggregates(self) -> dict[str, int]:
        """
        Recompute every aggregate from the event history.

        Counters are reset, then each stored event is re-applied in chain
        order with the same semantics as live processing.

        Returns:
            Dict with number of events replayed and users touched
        """
        replayed = 0
        async with self._transaction("rebuild_aggregates") as session:
            await session.execute(update(User).values(
                total_referrals=0,
                total_rewards=ZERO,
                net_rewards=ZERO,
                ascension_bonus_referrals=0,
                ascension_bonus_sales_total=ZERO,
                ascension_bonus_rewards_claimed=ZERO,
            ))
            await session.execute(update(UserPackageStats).values(
                referral_count=0,
                total_rewards=ZERO,
                net_rewards=ZERO,
                ascension_bonus_referrals=0,
                ascension_bonus_sales_total=ZERO,
                ascension_bonus_rewards_claimed=ZERO,
            ))
            session.expire_all()

            applier = _DeltaApplier(session)
            async for event in ContractEventRepository(session).stream_in_chain_order():
                applier.seen_at = event.timestamp
                for delta in deltas_from_record(
                    event.event_type,
                    event.user_address,
                    event.amount,
                    event.package_id,
                    event.referrer_address,
                    event.event_data,
                ):
                    await applier.apply(delta)
                replayed += 1
            await applier.flush()
            users_touched = applier.users_touched

        logger.success(
            f"[MirrorStore] Rebuilt aggregates from {replayed} events "
            f"({users_touched} users)"
        )
        return {"events": replayed, "users": users_touched}

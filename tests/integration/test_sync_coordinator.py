"""Integration tests for the sync coordinator against a fake chain and SQLite."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.models.enums import LiveTransport, SyncPhase
from app.services.event_processor import EventProcessor, EventRecordData
from app.services.sync_coordinator import SyncContext, SyncCoordinator
from app.utils.exceptions import PersistenceError, SubscriptionDropped
from factories import ALICE, BOB, CAROL, GENESIS, WEI, FakeChain, tx_hash, wait_until


def make_coordinator(settings, chain, store):
    return SyncCoordinator(SyncContext(settings=settings, chain=chain, store=store))


def scenario_logs(make_log):
    """Two referrals of B, a booster reward and a withdrawal."""
    return [
        make_log(
            "ReferralRegistered", 101,
            user=ALICE, referrer=BOB, packageId=1, packageReferralCount=1, totalReferralCount=1,
        ),
        make_log("AddBoosterReward", 102, user=BOB, boosterReward=5 * WEI),
        make_log(
            "ReferralRegistered", 103,
            user=CAROL, referrer=BOB, packageId=1, packageReferralCount=2, totalReferralCount=2,
        ),
        make_log("RewardsWithdrawn", 104, user=BOB, amount=2 * WEI),
    ]


async def totals(store, address):
    found = await store.get_user(address)
    assert found is not None
    user, _ = found
    return user.total_referrals, user.total_rewards


async def stop(coordinator, task):
    await coordinator.stop()
    await asyncio.wait_for(task, timeout=5)


class FailingProcessor(EventProcessor):
    """Event processor whose handler blows up for one block."""

    def __init__(self, block):
        super().__init__()
        self.block = block

    def apply(self, event, timestamp):
        if event.log.block_number == self.block:
            raise ArithmeticError("amount overflow")
        return super().apply(event, timestamp)


class TestCatchUp:
    """Range sync and catch-up to the head."""

    @pytest.mark.asyncio
    async def test_scenario_totals(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)

        await coordinator.bootstrap()
        advanced = await coordinator.catch_up()

        assert advanced == 11
        assert coordinator.checkpoint == 110
        assert await store.get_checkpoint() == 110
        assert await totals(store, BOB) == (2, Decimal("3"))

        state = await store.get_sync_state()
        assert state.total_events == 4
        assert state.full_sync_completed is True

    @pytest.mark.asyncio
    async def test_replaying_the_same_logs_changes_nothing(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()
        await coordinator.catch_up()

        coordinator.checkpoint = GENESIS - 1
        result = await coordinator.sync_range(GENESIS, 110)

        assert result.stored == 0
        assert result.duplicates == 4
        assert await totals(store, BOB) == (2, Decimal("3"))
        assert (await store.list_events())[1] == 4

    @pytest.mark.asyncio
    async def test_unknown_event_does_not_stop_the_batch(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=[
            make_log.unknown(101, log_index=0),
            make_log("AddBoosterReward", 101, log_index=1, user=BOB, boosterReward=WEI),
        ])
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        result = await coordinator.sync_range(GENESIS, 110)

        assert result.unknown == 1
        assert result.stored == 1
        assert result.checkpoint == 110
        assert (await store.get_sync_state()).skipped_logs == 1
        assert await totals(store, BOB) == (0, Decimal("1"))

    @pytest.mark.asyncio
    async def test_persistence_failure_keeps_checkpoint(self, settings, store, make_log, monkeypatch):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        original = store.apply_processed
        failures = {"left": 1}

        async def flaky_apply(processed):
            if processed.record.block_number == 103 and failures["left"]:
                failures["left"] -= 1
                raise PersistenceError("database is locked")
            return await original(processed)

        monkeypatch.setattr(store, "apply_processed", flaky_apply)

        with pytest.raises(PersistenceError):
            await coordinator.sync_range(GENESIS, 110)

        assert coordinator.checkpoint == GENESIS - 1
        assert await store.get_checkpoint() == GENESIS - 1

        # The retry picks up the whole range again
        await coordinator.catch_up()

        assert coordinator.checkpoint == 110
        assert await totals(store, BOB) == (2, Decimal("3"))

    @pytest.mark.asyncio
    async def test_catch_up_retries_rpc_failures(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        chain.rpc_failures = 2
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        await coordinator.catch_up()

        assert coordinator.checkpoint == 110
        assert coordinator.last_error is not None
        state = await store.get_sync_state()
        assert state.error_count == 2
        assert state.last_error is None

    @pytest.mark.asyncio
    async def test_range_too_large_shrinks_chunk(self, settings, store, make_log):
        logs = [
            make_log("AddBoosterReward", block, user=BOB, boosterReward=WEI)
            for block in (105, 150, 199)
        ]
        chain = FakeChain(height=200, logs=logs, max_span=20)
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        await coordinator.catch_up()

        assert coordinator.checkpoint == 200
        assert coordinator.chunk_size <= 20
        assert await totals(store, BOB) == (0, Decimal("3"))

    @pytest.mark.asyncio
    async def test_confirmations_stay_behind_head(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        await coordinator.catch_up(confirmations=8)

        assert coordinator.checkpoint == 102
        assert await totals(store, BOB) == (1, Decimal("5"))

    def test_chunk_floor(self, settings):
        coordinator = make_coordinator(settings, FakeChain(), MagicMock())
        coordinator.chunk_size = settings.sync_min_chunk_size

        assert coordinator._shrink_chunk() is False

    def test_chunk_grows_back_after_successes(self, settings):
        coordinator = make_coordinator(settings, FakeChain(), MagicMock())
        coordinator.chunk_size = 10

        for _ in range(5):
            coordinator._grow_chunk()

        assert coordinator.chunk_size == 20


class TestDecodeFailures:
    """Undecodable logs hold the checkpoint, then are skipped."""

    @pytest.mark.asyncio
    async def test_withheld_then_skipped(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=[
            make_log("AddBoosterReward", 101, user=BOB, boosterReward=WEI),
            make_log.malformed("AddBoosterReward", 103),
            make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI),
        ])
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        first = await coordinator.sync_range(GENESIS, 110)
        assert first.withheld_at == 103
        assert first.checkpoint == 102

        second = await coordinator.sync_range(103, 110)
        assert second.withheld
        assert coordinator.checkpoint == 102

        third = await coordinator.sync_range(103, 110)
        assert not third.withheld
        assert third.skipped == 1
        assert coordinator.checkpoint == 110

        assert await totals(store, BOB) == (0, Decimal("2"))
        assert (await store.get_sync_state()).skipped_logs == 1
        assert coordinator.status()["pending_decode_retries"] == 0

    @pytest.mark.asyncio
    async def test_processing_failure_is_held_like_decode_failure(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=[
            make_log("AddBoosterReward", 101, user=BOB, boosterReward=WEI),
            make_log("AddBoosterReward", 103, user=ALICE, boosterReward=WEI),
            make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI),
        ])
        coordinator = make_coordinator(settings, chain, store)
        coordinator.ctx.processor = FailingProcessor(block=103)
        await coordinator.bootstrap()

        first = await coordinator.sync_range(GENESIS, 110)
        assert first.withheld_at == 103
        assert first.stored == 2
        assert coordinator.checkpoint == 102

        await coordinator.sync_range(103, 110)
        third = await coordinator.sync_range(103, 110)
        assert third.skipped == 1
        assert coordinator.checkpoint == 110

        assert await totals(store, BOB) == (0, Decimal("2"))
        assert await store.get_user(ALICE) is None

    @pytest.mark.asyncio
    async def test_zero_retry_limit_skips_immediately(self, settings, store, make_log):
        settings = settings.model_copy(update={"decode_failure_retry_limit": 0})
        chain = FakeChain(height=110, logs=[make_log.malformed("RewardsWithdrawn", 103)])
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()

        result = await coordinator.sync_range(GENESIS, 110)

        assert result.skipped == 1
        assert coordinator.checkpoint == 110


class TestBootstrap:
    """Starting checkpoint selection."""

    @pytest.mark.asyncio
    async def test_fresh_store_starts_at_genesis(self, settings, store):
        coordinator = make_coordinator(settings, FakeChain(), store)

        assert await coordinator.bootstrap() == GENESIS - 1
        assert await store.get_checkpoint() == GENESIS - 1

    @pytest.mark.asyncio
    async def test_resumes_from_last_stored_event(self, settings, store):
        await store.append_event(EventRecordData(
            event_type="AddBoosterReward",
            user_address=BOB,
            transaction_hash=tx_hash(1),
            block_number=150,
            log_index=0,
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        ))
        coordinator = make_coordinator(settings, FakeChain(), store)

        assert await coordinator.bootstrap() == 149

    @pytest.mark.asyncio
    async def test_persisted_checkpoint_wins(self, settings, store):
        await store.set_checkpoint(300)
        coordinator = make_coordinator(settings, FakeChain(), store)

        assert await coordinator.bootstrap() == 300
        assert coordinator.phase is SyncPhase.BOOTSTRAPPING


class TestHardRefresh:
    """Clearing the mirror and resyncing from genesis."""

    @pytest.mark.asyncio
    async def test_hard_refresh_resyncs(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)
        await coordinator.bootstrap()
        await coordinator.catch_up()
        await store.upsert_user(BOB, total_rewards="999")

        await coordinator.hard_refresh()

        assert coordinator.checkpoint == GENESIS - 1
        assert await store.get_checkpoint() == GENESIS - 1
        assert await store.get_user(BOB) is None

        await coordinator.catch_up()
        assert await totals(store, BOB) == (2, Decimal("3"))

    @pytest.mark.asyncio
    async def test_request_hard_refresh_runs_once(self, settings, store):
        coordinator = make_coordinator(settings, FakeChain(), store)
        await coordinator.bootstrap()

        first = coordinator.request_hard_refresh()
        second = coordinator.request_hard_refresh()
        await first

        assert first is second
        assert coordinator._needs_catch_up is True


class TestPushMode:
    """Push subscription handling."""

    @pytest.mark.asyncio
    async def test_removed_logs_are_not_queued(self, settings, store, make_log):
        chain = FakeChain(supports_push=True)
        chain.push_batches = [[
            make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI),
            make_log("AddBoosterReward", 106, user=BOB, boosterReward=WEI, removed=True),
        ]]
        coordinator = make_coordinator(settings, chain, store)
        queue = asyncio.Queue()

        with pytest.raises(SubscriptionDropped):
            await coordinator._listen(queue)

        assert queue.qsize() == 1
        assert (await queue.get()).block_number == 105

    @pytest.mark.asyncio
    async def test_pushed_log_moves_checkpoint_to_previous_block(self, settings, store, make_log):
        coordinator = make_coordinator(settings, FakeChain(supports_push=True), store)
        await coordinator.bootstrap()

        await coordinator._handle_pushed(
            make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI)
        )
        assert coordinator.checkpoint == 104
        assert await store.get_checkpoint() == 104

        await coordinator._handle_pushed(make_log.unknown(107))
        assert coordinator.checkpoint == 106
        assert (await store.get_sync_state()).skipped_logs == 1

        assert await totals(store, BOB) == (0, Decimal("1"))

    @pytest.mark.asyncio
    async def test_undecodable_push_schedules_catch_up(self, settings, store, make_log):
        coordinator = make_coordinator(settings, FakeChain(supports_push=True), store)
        await coordinator.bootstrap()

        await coordinator._handle_pushed(make_log.malformed("AddBoosterReward", 105))
        assert coordinator._needs_catch_up is True

        # Dropped until the catch-up has run
        await coordinator._handle_pushed(
            make_log("AddBoosterReward", 106, user=BOB, boosterReward=WEI)
        )
        assert coordinator.checkpoint == GENESIS - 1
        assert await store.get_user(BOB) is None

    @pytest.mark.asyncio
    async def test_falls_back_to_polling_after_failed_reconnects(self, settings, store, make_log):
        pushed = make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI)
        chain = FakeChain(height=110, logs=[pushed], supports_push=True)
        chain.failed_subscribes = settings.ws_max_reconnect_attempts
        coordinator = make_coordinator(settings, chain, store)

        task = asyncio.create_task(coordinator.run())
        try:
            await wait_until(
                lambda: coordinator.push_disabled
                and coordinator.transport is LiveTransport.POLLING
                and coordinator.phase is SyncPhase.LIVE
            )
        finally:
            await stop(coordinator, task)

        assert chain.subscriptions == settings.ws_max_reconnect_attempts
        assert coordinator.reconnect_failures == settings.ws_max_reconnect_attempts
        assert coordinator.phase is SyncPhase.STOPPED
        assert await totals(store, BOB) == (0, Decimal("1"))

    @pytest.mark.asyncio
    async def test_idle_drops_do_not_count_toward_fallback(self, settings, store):
        chain = FakeChain(height=110, supports_push=True)
        # One refused subscribe, then subscriptions that go live, deliver nothing and drop
        chain.failed_subscribes = settings.ws_max_reconnect_attempts - 1
        coordinator = make_coordinator(settings, chain, store)

        task = asyncio.create_task(coordinator.run())
        try:
            await wait_until(
                lambda: chain.subscriptions >= settings.ws_max_reconnect_attempts + 3
            )
            assert coordinator.push_disabled is False
            assert coordinator.transport is LiveTransport.PUSH
            assert coordinator.reconnect_failures == 0
        finally:
            await stop(coordinator, task)

    @pytest.mark.asyncio
    async def test_dropped_stream_is_recovered_by_catch_up(self, settings, store, make_log):
        first = make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI)
        lost = make_log("AddBoosterReward", 107, user=BOB, boosterReward=2 * WEI)
        chain = FakeChain(height=104, logs=[first], supports_push=True)
        # The stream ends after the first log, as it does on an unreadable notification
        chain.push_batches = [[first]]
        coordinator = make_coordinator(settings, chain, store)

        task = asyncio.create_task(coordinator.run())
        try:
            await wait_until(lambda: chain.subscriptions >= 2 and coordinator.checkpoint == 104)
            assert await totals(store, BOB) == (0, Decimal("1"))

            chain.logs.append(lost)
            chain.height = 108
            await wait_until(lambda: coordinator.checkpoint == 108)
        finally:
            await stop(coordinator, task)

        assert await totals(store, BOB) == (0, Decimal("3"))
        assert any(start <= 107 <= end for start, end in chain.get_logs_calls)

    @pytest.mark.asyncio
    async def test_unprocessable_push_schedules_catch_up(self, settings, store, make_log):
        coordinator = make_coordinator(settings, FakeChain(supports_push=True), store)
        coordinator.ctx.processor = FailingProcessor(block=105)
        await coordinator.bootstrap()

        await coordinator._handle_pushed(
            make_log("AddBoosterReward", 105, user=BOB, boosterReward=WEI)
        )

        assert coordinator._needs_catch_up is True
        assert coordinator.checkpoint == GENESIS - 1


class TestPollingMode:
    """Polling loop until shutdown."""

    @pytest.mark.asyncio
    async def test_polling_follows_new_blocks(self, settings, store, make_log):
        chain = FakeChain(height=110, logs=scenario_logs(make_log))
        coordinator = make_coordinator(settings, chain, store)

        task = asyncio.create_task(coordinator.run())
        try:
            await wait_until(lambda: coordinator.phase is SyncPhase.LIVE)
            assert coordinator.transport is LiveTransport.POLLING

            chain.logs.append(make_log("AddBoosterReward", 115, user=BOB, boosterReward=WEI))
            chain.height = 120
            await wait_until(lambda: coordinator.checkpoint == 120)
        finally:
            await stop(coordinator, task)

        assert await totals(store, BOB) == (2, Decimal("4"))
        status = coordinator.status()
        assert status["phase"] == "stopped"
        assert status["checkpoint"] == 120
        assert status["push_available"] is False

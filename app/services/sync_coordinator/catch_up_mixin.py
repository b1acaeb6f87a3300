"""
Sync Coordinator catch-up mixin.

Pulls log ranges in bounded chunks, runs every log through the decoder and
processor, persists each one and then advances the checkpoint.
"""

from dataclasses import dataclass

from loguru import logger

from app.config.constants import SYNC_CHUNK_GROWTH_AFTER
from app.models.enums import SyncPhase
from app.services.blockchain.raw_log import RawLog
from app.services.blockchain.rpc_wrapper import backoff_delay
from app.utils.exceptions import (
    PROCESSING_ERRORS,
    RETRYABLE_ERRORS,
    DecodeError,
    PersistenceError,
    RangeTooLarge,
    UnknownEvent,
)
from app.utils.security import mask_tx_hash


@dataclass
class BatchResult:
    """Outcome of one synced block range."""

    from_block: int
    to_block: int
    logs: int = 0
    stored: int = 0
    duplicates: int = 0
    unknown: int = 0
    decode_failures: int = 0
    skipped: int = 0
    checkpoint: int | None = None
    withheld_at: int | None = None

    @property
    def withheld(self) -> bool:
        """A log failed and the checkpoint stopped before its block."""
        return self.withheld_at is not None


class CatchUpMixin:
    """Mixin providing range sync and catch-up to the chain head."""

    async def sync_range(self, from_block: int, to_block: int) -> BatchResult:
        """
        Sync one inclusive block range and advance the checkpoint.

        Each log is persisted in its own transaction; the checkpoint write
        comes last. A log that fails to decode or process withholds the checkpoint at
        the block before it until the retry limit is spent, after which it
        is recorded as skipped.

        Args:
            from_block: First block
            to_block: Last block (inclusive)

        Returns:
            BatchResult

        Raises:
            RangeTooLarge: Endpoint rejected the span
            RpcUnavailable: Every endpoint failed
            PersistenceError: A store write failed; checkpoint unchanged
        """
        ctx = self.ctx
        logs = await ctx.chain.get_logs(from_block, to_block)
        result = BatchResult(from_block=from_block, to_block=to_block, logs=len(logs))

        for log in logs:
            try:
                decoded = ctx.decoder.decode(log)
            except UnknownEvent as e:
                result.unknown += 1
                logger.debug(
                    f"[Sync] Skipping log {log.log_index} in block {log.block_number}: {e}"
                )
                continue
            except DecodeError as e:
                self._hold_back(log, e, result)
                continue

            timestamp = await ctx.chain.get_block_timestamp(log.block_number)
            try:
                processed = ctx.processor.apply(decoded, timestamp)
            except PROCESSING_ERRORS as e:
                self._hold_back(log, DecodeError(decoded.name, f"processing failed: {e!r}"), result)
                continue
            try:
                is_new = await ctx.store.apply_processed(processed)
            except PersistenceError:
                logger.error(
                    f"[Sync] Failed to persist {decoded.name} at block "
                    f"{log.block_number} (tx {mask_tx_hash(log.transaction_hash)}); "
                    f"checkpoint stays at {self.checkpoint}"
                )
                raise
            self._decode_failures.pop(self._log_key(log), None)

            if is_new:
                result.stored += 1
            else:
                result.duplicates += 1

        checkpoint = to_block if result.withheld_at is None else result.withheld_at - 1
        if self.checkpoint is None or checkpoint > self.checkpoint:
            await ctx.store.set_checkpoint(
                checkpoint,
                events_added=result.stored,
                skipped_logs=result.unknown + result.skipped,
            )
            self.checkpoint = checkpoint
        result.checkpoint = self.checkpoint

        if result.logs:
            logger.debug(
                f"[Sync] Blocks {from_block}-{to_block}: {result.stored} new, "
                f"{result.duplicates} duplicate, {result.unknown} unknown, "
                f"{result.decode_failures} withheld, {result.skipped} skipped"
            )
        return result

    def _log_key(self, log: RawLog) -> tuple[str, int, int]:
        return (log.transaction_hash, log.block_number, log.log_index)

    def _hold_back(self, log: RawLog, error: DecodeError, result: BatchResult) -> None:
        if self._register_decode_failure(log, error):
            result.decode_failures += 1
            if result.withheld_at is None:
                result.withheld_at = log.block_number
        else:
            result.skipped += 1

    def _register_decode_failure(self, log: RawLog, error: DecodeError) -> bool:
        """
        Count a decode failure for a log.

        Returns:
            True while the log still withholds the checkpoint,
            False once it has been given up on
        """
        key = self._log_key(log)
        failures = self._decode_failures.get(key, 0) + 1
        limit = self.ctx.settings.decode_failure_retry_limit

        if failures > limit:
            self._decode_failures.pop(key, None)
            logger.error(
                f"[Sync] Giving up on log {log.log_index} in block {log.block_number} "
                f"(tx {mask_tx_hash(log.transaction_hash)}) after {failures} attempts: {error}"
            )
            return False

        self._decode_failures[key] = failures
        logger.warning(
            f"[Sync] {error} (block {log.block_number}, attempt {failures}/{limit}); "
            f"holding checkpoint at {log.block_number - 1}"
        )
        return True

    async def catch_up(self, confirmations: int | None = None) -> int:
        """
        Sync until the checkpoint reaches the confirmed chain head.

        RPC and store failures are retried with capped exponential backoff;
        a range is never skipped. Returns early only on shutdown.

        Args:
            confirmations: Blocks kept behind the head
                (defaults to SYNC_CONFIRMATIONS)

        Returns:
            Number of blocks the checkpoint advanced
        """
        ctx = self.ctx
        settings = ctx.settings
        if confirmations is None:
            confirmations = settings.sync_confirmations

        self.phase = SyncPhase.CATCHING_UP
        start = self.checkpoint
        attempt = 0
        chunks = 0
        head = None

        while not ctx.stopping:
            try:
                head = await ctx.chain.current_height() - confirmations
                if self.checkpoint >= head:
                    break

                async with ctx.batch_lock:
                    if ctx.stopping:
                        break
                    from_block = self.checkpoint + 1
                    to_block = min(self.checkpoint + self.chunk_size, head)
                    result = await self.sync_range(from_block, to_block)

            except RangeTooLarge as e:
                if self._shrink_chunk():
                    logger.warning(f"[Sync] {e}; chunk size now {self.chunk_size}")
                    continue
                attempt += 1
                await self._retry_later(e, attempt)
                continue

            except RETRYABLE_ERRORS as e:
                attempt += 1
                await self._retry_later(e, attempt)
                continue

            attempt = 0
            chunks += 1
            self._grow_chunk()

            if result.withheld:
                await self._sleep(backoff_delay(
                    result.decode_failures,
                    settings.sync_backoff_base,
                    settings.sync_backoff_cap,
                ))

            if chunks % settings.sync_progress_log_every == 0:
                remaining = max(head - self.checkpoint, 0)
                logger.info(
                    f"[Sync] Progress: checkpoint {self.checkpoint}, "
                    f"{remaining} blocks behind head {head}"
                )

        advanced = self.checkpoint - start if start is not None else 0
        if head is not None and self.checkpoint >= head:
            if advanced:
                logger.success(
                    f"[Sync] Caught up to block {self.checkpoint} (+{advanced} blocks)"
                )
            await self._mark_caught_up()
        return advanced

    async def _mark_caught_up(self) -> None:
        try:
            await self.ctx.store.mark_caught_up()
        except PersistenceError as e:
            logger.warning(f"[Sync] Could not flag completed catch-up: {e}")

    async def _retry_later(self, error: Exception, attempt: int) -> None:
        """Record the error and sleep for the backoff delay."""
        settings = self.ctx.settings
        delay = backoff_delay(attempt, settings.sync_backoff_base, settings.sync_backoff_cap)
        logger.warning(
            f"[Sync] {type(error).__name__}: {error}; retrying from block "
            f"{self.checkpoint + 1} in {delay:.1f}s (attempt {attempt})"
        )
        self.last_error = str(error)
        if not isinstance(error, PersistenceError):
            try:
                await self.ctx.store.record_sync_error(f"{type(error).__name__}: {error}")
            except PersistenceError as store_error:
                logger.warning(f"[Sync] Could not record sync error: {store_error}")
        await self._sleep(delay)

    def _shrink_chunk(self) -> bool:
        """Halve the chunk size. Returns False if already at the floor."""
        floor = self.ctx.settings.sync_min_chunk_size
        if self.chunk_size <= floor:
            return False
        self.chunk_size = max(floor, self.chunk_size // 2)
        self._chunk_successes = 0
        return True

    def _grow_chunk(self) -> None:
        """Double the chunk size back toward the maximum after a run of successes."""
        maximum = self.ctx.settings.sync_chunk_size
        if self.chunk_size >= maximum:
            return
        self._chunk_successes += 1
        if self._chunk_successes >= SYNC_CHUNK_GROWTH_AFTER:
            self.chunk_size = min(maximum, self.chunk_size * 2)
            self._chunk_successes = 0
            logger.debug(f"[Sync] Chunk size raised to {self.chunk_size}")

"""
Sync Coordinator live mixin.

Keeps the mirror current once caught up: push subscription when a
websocket endpoint is configured, fixed-interval polling otherwise or after
the subscription keeps failing.
"""

import asyncio
import contextlib

from loguru import logger

from app.models.enums import LiveTransport, SyncPhase
from app.services.blockchain.raw_log import RawLog
from app.services.blockchain.rpc_wrapper import backoff_delay
from app.utils.exceptions import (
    PROCESSING_ERRORS,
    DecodeError,
    PersistenceError,
    RpcUnavailable,
    SubscriptionDropped,
    SubscriptionFailed,
    UnknownEvent,
)
from app.utils.security import mask_tx_hash


class LiveMixin:
    """Mixin providing push and polling live modes."""

    async def run_polling(self) -> None:
        """Poll for new blocks every SYNC_POLL_INTERVAL until shutdown."""
        self.transport = LiveTransport.POLLING
        interval = self.ctx.settings.sync_poll_interval
        logger.info(f"[Sync] Live via polling every {interval:.0f}s")

        while not self.ctx.stopping:
            await self.catch_up()
            if self.ctx.stopping:
                break
            self.phase = SyncPhase.LIVE
            await self._sleep(interval)

    async def run_push(self) -> None:
        """
        Follow the push subscription, rebuilding it when it drops.

        Returns on shutdown or after WS_MAX_RECONNECT_ATTEMPTS consecutive
        subscriptions that never went live, in which case push is disabled
        for the rest of the process lifetime. A drop after a successful
        subscribe resets the count.
        """
        ctx = self.ctx
        settings = ctx.settings
        self.transport = LiveTransport.PUSH
        failures = 0

        while not ctx.stopping:
            queue: asyncio.Queue[RawLog] = asyncio.Queue()
            listener = asyncio.create_task(self._listen(queue), name="log-subscription")
            self._listener = listener
            # Fill whatever was mined before the subscription went live.
            self._needs_catch_up = True

            try:
                await self._consume(queue, listener)
            finally:
                if not listener.done():
                    listener.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await listener
                self._listener = None

            if ctx.stopping or listener.cancelled():
                return

            error = listener.exception()
            if error is not None and not isinstance(error, SubscriptionDropped):
                raise error

            failures = failures + 1 if isinstance(error, SubscriptionFailed) else 0
            self.reconnect_failures = failures
            if failures >= settings.ws_max_reconnect_attempts:
                logger.error(
                    f"[Sync] Subscription failed {failures} times in a row; "
                    f"falling back to polling"
                )
                self.push_disabled = True
                return

            delay = backoff_delay(
                max(failures, 1), settings.sync_backoff_base, settings.sync_backoff_cap
            )
            self.phase = SyncPhase.RECONNECTING
            logger.warning(
                f"[Sync] Subscription lost ({error or 'stream ended'}); "
                f"reconnecting in {delay:.1f}s "
                f"(failure {failures}/{settings.ws_max_reconnect_attempts})"
            )
            await self._sleep(delay)

    async def _listen(self, queue: asyncio.Queue[RawLog]) -> None:
        """Forward subscription notifications to the queue."""
        async for log in self.ctx.chain.subscribe_logs():
            if log.removed:
                logger.warning(
                    f"[Sync] Ignoring removed log {log.log_index} in block "
                    f"{log.block_number} (tx {mask_tx_hash(log.transaction_hash)})"
                )
                continue
            await queue.put(log)

    async def _consume(self, queue: asyncio.Queue[RawLog], listener: asyncio.Task) -> None:
        """Persist pushed logs until the listener ends or shutdown."""
        ctx = self.ctx
        interval = ctx.settings.sync_poll_interval

        while not ctx.stopping:
            if self._needs_catch_up:
                self._needs_catch_up = False
                # Push delivers unconfirmed logs, so catch up to the head itself.
                await self.catch_up(confirmations=0)
                if ctx.stopping:
                    return
            self.phase = SyncPhase.LIVE

            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, listener},
                timeout=interval,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if getter not in done:
                getter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await getter
                if listener in done:
                    return
                # Idle: reconcile with a short catch-up.
                self._needs_catch_up = True
                continue

            await self._handle_pushed(getter.result())

    async def _handle_pushed(self, log: RawLog) -> None:
        """
        Persist one pushed log and move the checkpoint to the block before it.

        Logs in the pushed block after this one may still be in flight, so the
        checkpoint only covers fully finished blocks. Failures schedule a
        catch-up, which retries the range with the usual rules.
        """
        ctx = self.ctx

        async with ctx.batch_lock:
            if self._needs_catch_up:
                # A reset or failure is pending; the catch-up covers this block.
                return

            try:
                decoded = ctx.decoder.decode(log)
            except UnknownEvent as e:
                logger.debug(f"[Sync] Skipping pushed log: {e}")
                decoded = None
            except DecodeError as e:
                logger.warning(f"[Sync] Pushed log failed to decode: {e}")
                self._needs_catch_up = True
                return

            try:
                is_new = False
                if decoded is not None:
                    timestamp = await ctx.chain.get_block_timestamp(log.block_number)
                    try:
                        processed = ctx.processor.apply(decoded, timestamp)
                    except PROCESSING_ERRORS as e:
                        logger.warning(
                            f"[Sync] Pushed {decoded.name} failed to process: {e!r}"
                        )
                        self._needs_catch_up = True
                        return
                    is_new = await ctx.store.apply_processed(processed)
                    if is_new:
                        logger.info(
                            f"[Sync] {decoded.name} at block {log.block_number} "
                            f"(tx {mask_tx_hash(log.transaction_hash)})"
                        )

                checkpoint = log.block_number - 1
                if self.checkpoint is None or checkpoint > self.checkpoint:
                    await ctx.store.set_checkpoint(
                        checkpoint,
                        events_added=int(is_new),
                        skipped_logs=int(decoded is None),
                    )
                    self.checkpoint = checkpoint
            except (PersistenceError, RpcUnavailable) as e:
                logger.error(f"[Sync] Pushed log at block {log.block_number} failed: {e}")
                self.last_error = str(e)
                self._needs_catch_up = True

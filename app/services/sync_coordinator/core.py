"""
Sync Coordinator core.

Owns the checkpoint and drives the pipeline through its phases:
bootstrapping, catching up, then live (push or polling) until shutdown.
"""

import asyncio
from typing import Any

from loguru import logger

from app.models.enums import LiveTransport, SyncPhase
from app.services.blockchain.rpc_wrapper import backoff_delay
from app.utils.exceptions import PersistenceError

from .catch_up_mixin import CatchUpMixin
from .context import SyncContext
from .live_mixin import LiveMixin


class SyncCoordinator(CatchUpMixin, LiveMixin):
    """
    Single writer of the Mirror Store for one contract.

    Key features:
    - Resume from the persisted checkpoint
    - Bounded chunks that shrink on oversized ranges and grow back
    - Push subscription with reconnect and permanent polling fallback
    - Hard refresh: clear the mirror and resync from genesis
    """

    def __init__(self, ctx: SyncContext) -> None:
        """
        Initialize coordinator.

        Args:
            ctx: Shared pipeline context
        """
        self.ctx = ctx
        self.phase = SyncPhase.STOPPED
        self.transport: LiveTransport | None = None
        self.checkpoint: int | None = None
        self.chunk_size = ctx.settings.sync_chunk_size
        self.push_disabled = not ctx.chain.supports_push
        self.reconnect_failures = 0
        self.last_error: str | None = None

        self._chunk_successes = 0
        self._decode_failures: dict[tuple[str, int, int], int] = {}
        self._needs_catch_up = False
        self._listener: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None

    async def run(self) -> None:
        """Run until stop() is called."""
        try:
            await self.bootstrap()
            await self.catch_up()

            while not self.ctx.stopping:
                if self.push_disabled:
                    await self.run_polling()
                else:
                    await self.run_push()
        finally:
            self.phase = SyncPhase.STOPPED
            logger.info(f"[Sync] Stopped at checkpoint {self.checkpoint}")

    async def bootstrap(self) -> int:
        """
        Determine the starting checkpoint.

        Uses the persisted checkpoint when present; otherwise resumes from
        the last stored event block (re-processing it is idempotent) but
        never before the genesis block.

        Returns:
            Checkpoint (last fully processed block)
        """
        self.phase = SyncPhase.BOOTSTRAPPING
        settings = self.ctx.settings
        attempt = 0

        while True:
            try:
                checkpoint = await self.ctx.store.get_checkpoint()
                if checkpoint is None:
                    latest = await self.ctx.store.latest_event_block()
                    start = settings.genesis_block
                    if latest is not None:
                        start = max(latest, start)
                    checkpoint = start - 1
                    await self.ctx.store.set_checkpoint(checkpoint)
                    logger.info(f"[Sync] No checkpoint found, starting at block {start}")
                else:
                    logger.info(f"[Sync] Resuming after checkpoint {checkpoint}")
                break
            except PersistenceError as e:
                attempt += 1
                delay = backoff_delay(attempt, settings.sync_backoff_base, settings.sync_backoff_cap)
                logger.warning(f"[Sync] Bootstrap failed: {e}; retrying in {delay:.1f}s")
                if await self._sleep(delay):
                    raise

        self.checkpoint = checkpoint
        return checkpoint

    async def stop(self) -> None:
        """
        Request shutdown.

        An in-flight batch finishes persisting; sleeps and the push
        subscription are interrupted.
        """
        logger.info("[Sync] Stop requested")
        self.ctx.stop_event.set()
        if self._listener is not None and not self._listener.done():
            self._listener.cancel()

    async def hard_refresh(self) -> None:
        """
        Clear the mirror and restart sync from the genesis block.

        Runs between batches; the next catch-up starts over from genesis.
        """
        ctx = self.ctx
        async with ctx.batch_lock:
            logger.warning("[Sync] Hard refresh: clearing mirror")
            await ctx.store.clear_all()
            checkpoint = ctx.settings.genesis_block - 1
            await ctx.store.set_checkpoint(checkpoint)
            self.checkpoint = checkpoint
            self._decode_failures.clear()
            self._needs_catch_up = True
        logger.info(f"[Sync] Hard refresh done, resyncing from block {checkpoint + 1}")

    def request_hard_refresh(self) -> asyncio.Task:
        """
        Start a hard refresh in the background.

        Errors are logged, never raised to the caller.

        Returns:
            The background task
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.info("[Sync] Hard refresh already running")
            return self._refresh_task

        task = asyncio.create_task(self.hard_refresh(), name="hard-refresh")
        task.add_done_callback(self._on_refresh_done)
        self._refresh_task = task
        return task

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("[Sync] Hard refresh cancelled")
            return
        error = task.exception()
        if error is not None:
            self.last_error = str(error)
            logger.error(f"[Sync] Hard refresh failed: {type(error).__name__}: {error}")

    async def _sleep(self, seconds: float) -> bool:
        """
        Sleep unless shutdown is requested first.

        Returns:
            True if woken by shutdown
        """
        try:
            await asyncio.wait_for(self.ctx.stop_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    def status(self) -> dict[str, Any]:
        """In-memory sync state for health and status endpoints."""
        return {
            "phase": self.phase.value,
            "transport": self.transport.value if self.transport else None,
            "checkpoint": self.checkpoint,
            "chunk_size": self.chunk_size,
            "push_available": self.ctx.chain.supports_push,
            "push_disabled": self.push_disabled,
            "reconnect_failures": self.reconnect_failures,
            "pending_decode_retries": len(self._decode_failures),
            "last_error": self.last_error,
        }

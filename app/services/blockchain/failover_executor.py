"""
Failover Executor - RPC Endpoint Failover Logic.

Runs synchronous web3 calls in a thread pool and rotates through the
configured endpoints when a call fails.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from loguru import logger as default_logger

from app.config.constants import RPC_EXECUTOR_WORKERS, RPC_HTTP_TIMEOUT, RPC_SWITCH_DELAY
from app.services.blockchain.rpc_wrapper import with_timeout
from app.utils.exceptions import RpcUnavailable
from app.utils.security import mask_rpc_url

T = TypeVar("T")


class FailoverExecutor:
    """
    Execute operations with automatic endpoint failover.

    Features:
    - Ordered list of Web3 providers, the first one preferred
    - Rotation to the next provider on any failure
    - Fixed retry budget per call, then RpcUnavailable
    - Exceptions listed in ``passthrough`` propagate immediately
    - Thread pool executor for sync Web3 calls

    Usage:
        executor = FailoverExecutor([web3_primary, web3_backup])
        height = await executor.execute(
            operation=lambda w3: w3.eth.block_number,
            operation_name="eth_blockNumber",
        )
    """

    def __init__(
        self,
        providers: list[Any],
        max_retries: int = 3,
        call_timeout: float = RPC_HTTP_TIMEOUT,
        switch_delay: float = RPC_SWITCH_DELAY,
        max_workers: int = RPC_EXECUTOR_WORKERS,
        logger: Any = None,
    ) -> None:
        """
        Initialize failover executor.

        Args:
            providers: Web3 instances in preference order
            max_retries: Attempts per call (at least one per provider)
            call_timeout: Timeout for a single attempt in seconds
            switch_delay: Pause after rotating to another provider
            max_workers: Thread pool size for sync operations
            logger: Logger instance (defaults to loguru logger)
        """
        if not providers:
            raise ValueError("At least one provider must be specified")

        self.providers = providers
        self.current_provider_index = 0
        self.max_retries = max(max_retries, len(providers))
        self.call_timeout = call_timeout
        self.switch_delay = switch_delay
        self.logger = logger or default_logger

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="rpc-failover",
        )

        self._failover_count = 0
        self._success_count = 0
        self._failure_count = 0

        self.logger.info(
            f"[Failover] Initialized with {len(providers)} providers"
        )

    async def execute(
        self,
        operation: Callable[[Any], T],
        operation_name: str,
        passthrough: tuple[type[BaseException], ...] = (),
    ) -> T:
        """
        Execute operation with automatic provider failover.

        Args:
            operation: Function that takes a Web3 instance and returns a result
            operation_name: Human-readable operation name for logging
            passthrough: Exception types raised to the caller without rotating

        Returns:
            Operation result

        Raises:
            RpcUnavailable: If every attempt failed
        """
        last_error: Exception | None = None
        attempts = 0

        while attempts < self.max_retries:
            attempts += 1
            provider = self.get_current_provider()
            provider_name = self._get_provider_name(self.current_provider_index)

            try:
                result = await with_timeout(
                    self._run_sync(operation, provider),
                    timeout=self.call_timeout,
                    operation_name=f"{operation_name}@{provider_name}",
                )
            except passthrough:
                raise
            except Exception as e:
                last_error = e
                self._failure_count += 1
                self.logger.warning(
                    f"[Failover] {operation_name} failed on {provider_name} "
                    f"(attempt {attempts}/{self.max_retries}): {type(e).__name__}: {e}"
                )
                if attempts < self.max_retries:
                    await self._rotate()
                continue

            self._success_count += 1
            return result

        self.logger.error(
            f"[Failover] {operation_name} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )
        raise RpcUnavailable(operation_name, attempts, last_error) from last_error

    async def _run_sync(self, operation: Callable[[Any], T], provider: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: operation(provider))

    async def _rotate(self) -> None:
        """Switch to the next provider, pausing before the retry."""
        if len(self.providers) > 1:
            self.current_provider_index = (
                self.current_provider_index + 1
            ) % len(self.providers)
            self._failover_count += 1
            self.logger.info(
                f"[Failover] Switched to "
                f"{self._get_provider_name(self.current_provider_index)}"
            )
        if self.switch_delay:
            await asyncio.sleep(self.switch_delay)

    def get_current_provider(self) -> Any:
        """Get currently active Web3 instance."""
        if self.current_provider_index >= len(self.providers):
            self.current_provider_index = 0
        return self.providers[self.current_provider_index]

    def get_stats(self) -> dict[str, Any]:
        """
        Get failover execution statistics.

        Returns:
            Dict with provider info and success/failure/failover counters
        """
        return {
            "providers_count": len(self.providers),
            "current_provider": self._get_provider_name(self.current_provider_index),
            "success_count": self._success_count,
            "failure_count": self._failure_count,
            "failover_count": self._failover_count,
        }

    def _get_provider_name(self, index: int) -> str:
        """Masked endpoint URI, or provider_N when unknown."""
        provider = self.providers[index]
        endpoint = getattr(getattr(provider, "provider", None), "endpoint_uri", None)
        if isinstance(endpoint, str) and endpoint:
            return mask_rpc_url(endpoint)
        return f"provider_{index}"

    def close(self) -> None:
        """Shutdown thread pool executor."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.logger.debug("[Failover] Thread pool shut down")

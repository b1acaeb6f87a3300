"""
Chain Client.

Read access to one chain and one contract: block height, blocks, log
ranges, push subscription and the package catalog view functions. HTTP
calls go through FailoverExecutor so every call rotates endpoints on
failure.
"""

from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any

from loguru import logger
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from app.config.constants import BLOCK_TIMESTAMP_CACHE_SIZE
from app.config.settings import Settings
from app.services.blockchain.contract_abi import CONTRACT_VIEW_ABI
from app.services.blockchain.failover_executor import FailoverExecutor
from app.services.blockchain.log_subscription import LogSubscription
from app.services.blockchain.raw_log import RawLog
from app.services.blockchain.rpc_wrapper import is_range_error
from app.utils.datetime_utils import from_unix
from app.utils.exceptions import RangeTooLarge
from app.utils.security import mask_rpc_url


def build_web3(url: str, timeout: int, poa: bool) -> Web3:
    """
    Create a Web3 HTTP instance for one endpoint.

    Args:
        url: HTTP JSON-RPC endpoint
        timeout: Request timeout in seconds
        poa: Inject POA extra-data middleware

    Returns:
        Configured Web3 instance
    """
    w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
    if poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


class ChainClient:
    """Chain access for the referral contract."""

    def __init__(
        self,
        executor: FailoverExecutor,
        contract_address: str,
        ws_url: str | None = None,
        subscription_factory: Callable[[str, str, list[str] | None], LogSubscription] | None = None,
        timestamp_cache_size: int = BLOCK_TIMESTAMP_CACHE_SIZE,
    ) -> None:
        """
        Initialize chain client.

        Args:
            executor: Failover executor over the HTTP endpoints
            contract_address: Contract whose logs are read
            ws_url: WebSocket endpoint; None disables push subscriptions
            subscription_factory: Builds a subscription from (ws_url, address, topics)
            timestamp_cache_size: Block timestamps kept in memory
        """
        self.executor = executor
        self.contract_address = contract_address.lower()
        self.ws_url = ws_url
        self._subscription_factory = subscription_factory or LogSubscription
        self._timestamp_cache: OrderedDict[int, datetime] = OrderedDict()
        self._timestamp_cache_size = timestamp_cache_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChainClient":
        """Build client with one Web3 instance per configured endpoint."""
        urls = settings.get_rpc_http_urls()
        if not urls:
            raise ValueError("RPC_HTTP_URLS must contain at least one http(s) endpoint")

        providers = [
            build_web3(url, settings.rpc_timeout, settings.rpc_poa_chain)
            for url in urls
        ]
        logger.info(
            f"[ChainClient] Endpoints: {', '.join(mask_rpc_url(u) for u in urls)}; "
            f"push: {mask_rpc_url(settings.rpc_ws_url) if settings.rpc_ws_url else 'disabled'}"
        )
        executor = FailoverExecutor(
            providers,
            max_retries=settings.rpc_max_retries,
            call_timeout=settings.rpc_timeout + 5,
        )
        return cls(
            executor=executor,
            contract_address=settings.contract_address,
            ws_url=settings.rpc_ws_url,
        )

    @property
    def supports_push(self) -> bool:
        """Whether subscribe_logs can be used."""
        return bool(self.ws_url)

    async def current_height(self) -> int:
        """
        Get latest block number.

        Raises:
            RpcUnavailable: If every endpoint failed
        """
        return await self.executor.execute(
            lambda w3: int(w3.eth.block_number), "eth_blockNumber"
        )

    async def get_block(self, block_number: int) -> Any:
        """Get block header by number (without transactions)."""
        return await self.executor.execute(
            lambda w3: w3.eth.get_block(block_number, full_transactions=False),
            f"eth_getBlockByNumber({block_number})",
        )

    async def get_block_timestamp(self, block_number: int) -> datetime:
        """
        Get mined time of a block, cached per block number.

        Returns:
            Aware UTC datetime
        """
        cached = self._timestamp_cache.get(block_number)
        if cached is not None:
            self._timestamp_cache.move_to_end(block_number)
            return cached

        block = await self.get_block(block_number)
        timestamp = from_unix(int(block["timestamp"]))

        self._timestamp_cache[block_number] = timestamp
        if len(self._timestamp_cache) > self._timestamp_cache_size:
            self._timestamp_cache.popitem(last=False)
        return timestamp

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        contract_address: str | None = None,
    ) -> list[RawLog]:
        """
        Fetch contract logs in an inclusive block range.

        Args:
            from_block: First block
            to_block: Last block (inclusive)
            contract_address: Defaults to the configured contract

        Returns:
            Logs in chain order

        Raises:
            RangeTooLarge: Endpoint rejected the span
            RpcUnavailable: Every endpoint failed
        """
        address = Web3.to_checksum_address(contract_address or self.contract_address)
        params = {"address": address, "fromBlock": from_block, "toBlock": to_block}

        def fetch(w3: Web3) -> list[Any]:
            try:
                return list(w3.eth.get_logs(params))
            except Exception as e:
                if is_range_error(e):
                    raise RangeTooLarge(from_block, to_block, str(e)) from e
                raise

        entries = await self.executor.execute(
            fetch,
            f"eth_getLogs({from_block}-{to_block})",
            passthrough=(RangeTooLarge,),
        )
        logs = [RawLog.from_rpc(entry) for entry in entries]
        logs.sort(key=lambda log: log.position)
        return logs

    def subscribe_logs(
        self,
        contract_address: str | None = None,
        topics: list[str] | None = None,
    ) -> AsyncIterator[RawLog]:
        """
        Open a fresh push subscription to contract logs.

        Each call builds a new websocket session; the returned iterator
        raises SubscriptionDropped when the transport is lost.

        Raises:
            RuntimeError: If no websocket endpoint is configured
        """
        if not self.ws_url:
            raise RuntimeError("Push subscription requires RPC_WS_URL")
        subscription = self._subscription_factory(
            self.ws_url, contract_address or self.contract_address, topics
        )
        return subscription.stream()

    async def read_package_count(self) -> int:
        """Call nodePackageCount() on the contract."""
        return await self.executor.execute(
            lambda w3: int(self._contract(w3).functions.nodePackageCount().call()),
            "nodePackageCount()",
        )

    async def read_package(self, package_id: int) -> dict[str, Any]:
        """
        Call nodePackages(id) on the contract.

        Returns:
            Dict with name, price (wei), duration, roiPercentage, isActive
        """
        name, price, duration, roi, is_active = await self.executor.execute(
            lambda w3: self._contract(w3).functions.nodePackages(package_id).call(),
            f"nodePackages({package_id})",
        )
        return {
            "name": name,
            "price": int(price),
            "duration": int(duration),
            "roiPercentage": int(roi),
            "isActive": bool(is_active),
        }

    def _contract(self, w3: Web3) -> Any:
        return w3.eth.contract(
            address=Web3.to_checksum_address(self.contract_address),
            abi=CONTRACT_VIEW_ABI,
        )

    def get_stats(self) -> dict[str, Any]:
        """Endpoint failover statistics."""
        return self.executor.get_stats()

    def close(self) -> None:
        """Release executor threads."""
        self.executor.close()

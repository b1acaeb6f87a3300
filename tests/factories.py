"""Test doubles and builders shared by unit and integration tests."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from eth_abi import encode
from eth_utils import to_hex

from app.services.blockchain.contract_abi import CONTRACT_EVENTS_ABI
from app.services.blockchain.raw_log import RawLog
from app.services.event_decoder import EventDecoder
from app.utils.exceptions import (
    RangeTooLarge,
    RpcUnavailable,
    SubscriptionDropped,
    SubscriptionFailed,
)

CONTRACT = "0xc8ac3954f9550ef41705e9c0ae2179b8df01cf4b"
GENESIS = 100
BLOCK_TIME_ORIGIN = datetime(2024, 1, 1, tzinfo=UTC)

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20

WEI = 10**18


def tx_hash(n: int) -> str:
    """Deterministic transaction hash."""
    return "0x" + format(n, "064x")


class LogFactory:
    """Build raw logs for contract events with ABI-encoded topics and data."""

    def __init__(self, contract: str = CONTRACT) -> None:
        self.contract = contract
        self.decoder = EventDecoder()
        self._abi = {item["name"]: item for item in CONTRACT_EVENTS_ABI}
        self._counter = 0

    def __call__(
        self,
        event_name: str,
        block: int,
        log_index: int = 0,
        tx: str | None = None,
        removed: bool = False,
        **values: Any,
    ) -> RawLog:
        abi = self._abi[event_name]
        topics = [self.decoder.topic_for(event_name)]
        data_types, data_values = [], []
        for item in abi["inputs"]:
            value = values[item["name"]]
            if item.get("indexed"):
                topics.append(to_hex(encode([item["type"]], [value])))
            else:
                data_types.append(item["type"])
                data_values.append(value)

        if tx is None:
            self._counter += 1
            tx = tx_hash(block * 1000 + self._counter)

        return RawLog(
            address=self.contract,
            topics=tuple(topics),
            data=to_hex(encode(data_types, data_values)),
            block_number=block,
            transaction_hash=tx,
            log_index=log_index,
            removed=removed,
        )

    def unknown(self, block: int, log_index: int = 0) -> RawLog:
        """Log whose topic0 matches no contract event."""
        return RawLog(
            address=self.contract,
            topics=("0x" + "ee" * 32,),
            data="0x",
            block_number=block,
            transaction_hash=tx_hash(block * 1000 + 999),
            log_index=log_index,
        )

    def malformed(self, event_name: str, block: int, log_index: int = 0) -> RawLog:
        """Known topic0 with a truncated data payload."""
        topics = [self.decoder.topic_for(event_name)]
        abi = self._abi[event_name]
        topics += ["0x" + "00" * 32 for item in abi["inputs"] if item.get("indexed")]
        return RawLog(
            address=self.contract,
            topics=tuple(topics),
            data="0x1234",
            block_number=block,
            transaction_hash=tx_hash(block * 1000 + 998),
            log_index=log_index,
        )


class FakeChain:
    """In-memory chain client: a fixed log set, a movable head and scripted pushes."""

    def __init__(
        self,
        height: int = GENESIS,
        logs: list[RawLog] | None = None,
        max_span: int | None = None,
        supports_push: bool = False,
    ) -> None:
        self.height = height
        self.logs = list(logs or [])
        self.max_span = max_span
        self.supports_push = supports_push
        self.get_logs_calls: list[tuple[int, int]] = []
        self.rpc_failures = 0
        self.push_batches: list[list[RawLog]] = []
        self.subscriptions = 0
        self.failed_subscribes = 0
        self.packages: dict[int, dict[str, Any]] = {}
        self.broken_packages: set[int] = set()
        self.closed = False

    async def current_height(self) -> int:
        return self.height

    async def get_logs(
        self, from_block: int, to_block: int, contract_address: str | None = None
    ) -> list[RawLog]:
        self.get_logs_calls.append((from_block, to_block))
        if self.rpc_failures:
            self.rpc_failures -= 1
            raise RpcUnavailable(f"eth_getLogs({from_block}-{to_block})", 2)
        if self.max_span is not None and to_block - from_block + 1 > self.max_span:
            raise RangeTooLarge(from_block, to_block, "block range is too large")
        found = [log for log in self.logs if from_block <= log.block_number <= to_block]
        return sorted(found, key=lambda log: log.position)

    async def get_block_timestamp(self, block_number: int) -> datetime:
        return BLOCK_TIME_ORIGIN + timedelta(minutes=block_number)

    def subscribe_logs(self, contract_address: str | None = None, topics: list[str] | None = None):
        self.subscriptions += 1
        if self.failed_subscribes:
            self.failed_subscribes -= 1
            return self._refused()
        batch = self.push_batches.pop(0) if self.push_batches else []
        return self._stream(batch)

    async def _refused(self):
        raise SubscriptionFailed("eth_subscribe rejected")
        yield

    async def _stream(self, batch: list[RawLog]):
        for log in batch:
            yield log
            await asyncio.sleep(0)
        raise SubscriptionDropped("connection closed")

    async def read_package_count(self) -> int:
        return len(self.packages) + len(self.broken_packages)

    async def read_package(self, package_id: int) -> dict[str, Any]:
        if package_id in self.broken_packages:
            raise RpcUnavailable(f"nodePackages({package_id})", 2)
        return self.packages[package_id]

    def get_stats(self) -> dict[str, Any]:
        return {
            "providers_count": 1,
            "get_logs_calls": len(self.get_logs_calls),
            "subscriptions": self.subscriptions,
        }

    def close(self) -> None:
        self.closed = True


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll until predicate() is true or fail."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


"""
Raw log container shared by the chain client and the decoder.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from eth_utils import to_hex


def _hex(value: Any) -> str:
    """Normalize bytes/HexBytes/str to a lowercase 0x string."""
    if isinstance(value, str):
        value = value.lower()
        return value if value.startswith("0x") else f"0x{value}"
    return to_hex(value).lower()


def _int(value: Any) -> int:
    """JSON-RPC hands back quantities as hex strings; web3 as ints."""
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


@dataclass(frozen=True)
class RawLog:
    """One contract log as returned by eth_getLogs or a logs subscription."""

    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    transaction_hash: str
    log_index: int
    block_hash: str | None = None
    removed: bool = False

    @property
    def topic0(self) -> str | None:
        return self.topics[0] if self.topics else None

    @property
    def position(self) -> tuple[int, int]:
        """Sort key for chain order."""
        return (self.block_number, self.log_index)

    @classmethod
    def from_rpc(cls, entry: Mapping[str, Any]) -> "RawLog":
        """
        Build from a web3 AttributeDict or a raw JSON-RPC log object.

        Args:
            entry: Log entry with camelCase keys

        Returns:
            Normalized RawLog
        """
        block_hash = entry.get("blockHash")
        return cls(
            address=_hex(entry["address"]),
            topics=tuple(_hex(topic) for topic in entry.get("topics", [])),
            data=_hex(entry.get("data") or "0x"),
            block_number=_int(entry["blockNumber"]),
            transaction_hash=_hex(entry["transactionHash"]),
            log_index=_int(entry.get("logIndex", 0)),
            block_hash=_hex(block_hash) if block_hash is not None else None,
            removed=bool(entry.get("removed", False)),
        )

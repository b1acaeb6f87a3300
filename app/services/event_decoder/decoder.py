"""
Event Decoder.

Matches a raw log against the contract's event ABI and normalizes every
field according to the field-kind manifest.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import event_abi_to_log_topic, to_hex
from loguru import logger

from app.config.constants import TOKEN_DECIMALS
from app.models.enums import ContractEventType
from app.services.blockchain.contract_abi import CONTRACT_EVENTS_ABI
from app.services.blockchain.raw_log import RawLog
from app.services.event_decoder.field_manifest import FIELD_MANIFEST, FieldKind
from app.utils.exceptions import DecodeError, UnknownEvent

# Indexed dynamic values are stored as their keccak hash in the topic
_DYNAMIC_TYPES = ("string", "bytes")


def scale_token_amount(value: int, decimals: int = TOKEN_DECIMALS) -> str:
    """
    Convert an integer token amount to a decimal string in human units.

    Uses string construction so uint256-sized values never hit the
    decimal context precision.

    Examples:
        >>> scale_token_amount(5 * 10**18)
        '5.000000000000000000'
        >>> scale_token_amount(1)
        '0.000000000000000001'
    """
    return format(Decimal(f"{value}e-{decimals}"), "f")


@dataclass(frozen=True)
class DecodedEvent:
    """Typed view of one log: event name, normalized fields and origin."""

    name: str
    fields: Mapping[str, Any]
    log: RawLog

    @property
    def event_type(self) -> ContractEventType | None:
        """Known event type, or None for ABI events without a handler."""
        try:
            return ContractEventType(self.name)
        except ValueError:
            return None

    @property
    def block_number(self) -> int:
        return self.log.block_number


class EventDecoder:
    """Decode raw logs of the referral contract."""

    def __init__(
        self,
        abi: list[dict[str, Any]] | None = None,
        manifest: Mapping[str, Mapping[str, FieldKind]] | None = None,
    ) -> None:
        """
        Initialize decoder.

        Args:
            abi: Event ABI entries (defaults to the contract's events)
            manifest: Field-kind table (defaults to FIELD_MANIFEST)
        """
        self._manifest = manifest if manifest is not None else FIELD_MANIFEST
        self._events_by_topic: dict[str, dict[str, Any]] = {}

        for item in abi if abi is not None else CONTRACT_EVENTS_ABI:
            if item.get("type") != "event":
                continue
            topic = to_hex(event_abi_to_log_topic(item)).lower()
            self._events_by_topic[topic] = item

        logger.debug(f"[Decoder] Loaded {len(self._events_by_topic)} event signatures")

    @property
    def topics(self) -> list[str]:
        """All known topic0 values."""
        return list(self._events_by_topic)

    def topic_for(self, event_name: str) -> str:
        """
        Get topic0 of an event by name.

        Raises:
            KeyError: If the event is not in the ABI
        """
        for topic, item in self._events_by_topic.items():
            if item["name"] == event_name:
                return topic
        raise KeyError(event_name)

    def decode(self, log: RawLog) -> DecodedEvent:
        """
        Decode a raw log.

        Args:
            log: Raw log entry

        Returns:
            Decoded event with normalized field values

        Raises:
            UnknownEvent: Topic matches no known signature
            DecodeError: Known signature but malformed payload
        """
        topic0 = log.topic0
        abi = self._events_by_topic.get(topic0 or "")
        if abi is None:
            raise UnknownEvent(topic0)

        name = abi["name"]
        inputs = abi["inputs"]
        indexed = [item for item in inputs if item.get("indexed")]
        non_indexed = [item for item in inputs if not item.get("indexed")]

        if len(log.topics) - 1 != len(indexed):
            raise DecodeError(
                name,
                f"expected {len(indexed)} indexed topics, got {len(log.topics) - 1}",
            )

        try:
            raw_values: dict[str, Any] = {}
            for item, topic in zip(indexed, log.topics[1:]):
                raw_values[item["name"]] = self._decode_topic(item["type"], topic)

            data = bytes.fromhex(log.data.removeprefix("0x"))
            decoded = decode([item["type"] for item in non_indexed], data)
            for item, value in zip(non_indexed, decoded):
                raw_values[item["name"]] = value
        except (DecodingError, ValueError, TypeError, OverflowError) as e:
            raise DecodeError(name, f"{type(e).__name__}: {e}") from e

        fields = {
            field_name: self._normalize(name, field_name, value)
            for field_name, value in raw_values.items()
        }
        return DecodedEvent(name=name, fields=fields, log=log)

    @staticmethod
    def _decode_topic(abi_type: str, topic: str) -> Any:
        if abi_type in _DYNAMIC_TYPES or abi_type.endswith("]"):
            return topic
        return decode([abi_type], bytes.fromhex(topic[2:]))[0]

    def _normalize(self, event_name: str, field_name: str, value: Any) -> Any:
        """Convert one ABI value according to its declared kind."""
        kind = self._manifest.get(event_name, {}).get(field_name)
        if kind is None:
            raise DecodeError(event_name, f"no field kind declared for '{field_name}'")

        if kind is FieldKind.MONETARY:
            return scale_token_amount(self._require_int(event_name, field_name, value))
        if kind in (FieldKind.COUNT, FieldKind.TIMESTAMP, FieldKind.ID):
            return self._require_int(event_name, field_name, value)
        if kind is FieldKind.ADDRESS:
            if not isinstance(value, str) or not value.startswith("0x"):
                raise DecodeError(event_name, f"'{field_name}' is not an address: {value!r}")
            return value.lower()
        if kind is FieldKind.FLAG:
            if not isinstance(value, bool):
                raise DecodeError(event_name, f"'{field_name}' is not a boolean: {value!r}")
            return value
        if isinstance(value, bytes):
            return to_hex(value)
        return str(value)

    @staticmethod
    def _require_int(event_name: str, field_name: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodeError(event_name, f"'{field_name}' is not an integer: {value!r}")
        return value

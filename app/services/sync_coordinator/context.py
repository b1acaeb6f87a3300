"""
Sync context.

Everything one indexer process shares, built once at startup and passed to
the coordinator, the package sync service and the HTTP API.
"""

import asyncio
from dataclasses import dataclass, field

from app.config.settings import Settings
from app.services.blockchain.chain_client import ChainClient
from app.services.event_decoder.decoder import EventDecoder
from app.services.event_processor.processor import EventProcessor
from app.services.mirror_store import MirrorStore


@dataclass
class SyncContext:
    """
    Shared collaborators of one chain/contract pipeline.

    Attributes:
        settings: Process configuration
        chain: Chain client for the configured contract
        store: Mirror Store
        decoder: Event decoder for the contract ABI
        processor: Event processor
        batch_lock: Serializes batch persistence and administrative resets
        stop_event: Set once on shutdown
    """

    settings: Settings
    chain: ChainClient
    store: MirrorStore
    decoder: EventDecoder = field(default_factory=EventDecoder)
    processor: EventProcessor = field(default_factory=EventProcessor)
    batch_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

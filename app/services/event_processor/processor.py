"""
Event Processor.

Dispatches decoded events to their handler. Pure: no I/O, no state.
"""

from collections.abc import Mapping
from datetime import datetime

from loguru import logger

from app.models.enums import ContractEventType
from app.services.event_decoder.decoder import DecodedEvent
from app.services.event_processor.handlers import (
    EVENT_HANDLERS,
    Handler,
    handle_passthrough,
)
from app.services.event_processor.types import ProcessedEvent


class EventProcessor:
    """Derive event records and aggregate deltas from decoded events."""

    def __init__(
        self, handlers: Mapping[ContractEventType, Handler] | None = None
    ) -> None:
        self._handlers = handlers if handlers is not None else EVENT_HANDLERS

    def apply(self, event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
        """
        Process one decoded event.

        Args:
            event: Decoded event
            timestamp: Block time of the event's block

        Returns:
            Record to append plus deltas to apply once
        """
        event_type = event.event_type
        handler = self._handlers.get(event_type) if event_type is not None else None
        if handler is None:
            logger.debug(f"[Processor] No handler for {event.name}, storing raw payload")
            return handle_passthrough(event, timestamp)
        return handler(event, timestamp)

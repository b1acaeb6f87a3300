"""
Event decoder package.

Turns raw contract logs into typed events with normalized field values.
"""

from app.services.event_decoder.decoder import (
    DecodedEvent,
    EventDecoder,
    scale_token_amount,
)
from app.services.event_decoder.field_manifest import (
    FIELD_MANIFEST,
    FieldKind,
    field_kind,
)

__all__ = [
    "DecodedEvent",
    "EventDecoder",
    "FIELD_MANIFEST",
    "FieldKind",
    "field_kind",
    "scale_token_amount",
]

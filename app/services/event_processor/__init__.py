"""
Event processor package.
"""

from app.services.event_processor.handlers import (
    EVENT_HANDLERS,
    REWARD_DECREASING,
    REWARD_INCREASING,
    reward_beneficiary,
    reward_direction,
)
from app.services.event_processor.processor import EventProcessor
from app.services.event_processor.replay import deltas_for, deltas_from_record
from app.services.event_processor.types import (
    AdjustRewards,
    AggregateDelta,
    EnsurePackageStats,
    EnsureUser,
    EventRecordData,
    ProcessedEvent,
    SetAscensionCounters,
    SetPackageReferralCount,
    SetReferralCount,
    UpsertPackage,
)

__all__ = [
    "AdjustRewards",
    "AggregateDelta",
    "EVENT_HANDLERS",
    "EnsurePackageStats",
    "EnsureUser",
    "EventProcessor",
    "EventRecordData",
    "ProcessedEvent",
    "REWARD_DECREASING",
    "REWARD_INCREASING",
    "SetAscensionCounters",
    "SetPackageReferralCount",
    "SetReferralCount",
    "UpsertPackage",
    "deltas_for",
    "deltas_from_record",
    "reward_beneficiary",
    "reward_direction",
]

"""
Event processor output types.

An EventRecordData is the row to append to the event log; AggregateDelta
variants describe how user, package-stats and catalog rows change.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class EventRecordData:
    """Canonical event row, keyed by its natural key."""

    event_type: str
    user_address: str
    transaction_hash: str
    block_number: int
    log_index: int
    timestamp: datetime
    amount: Decimal = Decimal("0")
    package_id: int | None = None
    referrer_address: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def natural_key(self) -> tuple[str, int, int, str, str]:
        return (
            self.transaction_hash,
            self.block_number,
            self.log_index,
            self.event_type,
            self.user_address,
        )


@dataclass(frozen=True)
class EnsureUser:
    """Create the user if missing; optionally mark as registered."""

    address: str
    registered: bool = False


@dataclass(frozen=True)
class AdjustRewards:
    """Add (positive) or consume (negative) rewards; total floors at zero."""

    address: str
    amount: Decimal
    package_id: int | None = None


@dataclass(frozen=True)
class SetReferralCount:
    """Contract-reported running referral total; the larger value wins."""

    address: str
    total: int


@dataclass(frozen=True)
class SetPackageReferralCount:
    """Contract-reported package-scoped referral total; the larger value wins."""

    address: str
    package_id: int
    count: int


@dataclass(frozen=True)
class EnsurePackageStats:
    """Create the (user, package) stats row if missing."""

    address: str
    package_id: int


@dataclass(frozen=True)
class SetAscensionCounters:
    """Overwrite ascension counters on the package row and the user row."""

    address: str
    package_id: int
    referrals: int
    sales_total: Decimal
    rewards_claimed: Decimal


@dataclass(frozen=True)
class UpsertPackage:
    """Create or update a catalog entry."""

    package_id: int
    name: str
    price: Decimal
    duration: int
    roi_percentage: int
    is_active: bool = True


AggregateDelta = (
    EnsureUser
    | AdjustRewards
    | SetReferralCount
    | SetPackageReferralCount
    | EnsurePackageStats
    | SetAscensionCounters
    | UpsertPackage
)


@dataclass(frozen=True)
class ProcessedEvent:
    """Processor output for one decoded event."""

    record: EventRecordData
    deltas: tuple[AggregateDelta, ...] = ()

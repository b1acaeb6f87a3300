"""
Deltas derived from stored event records.

Used to rebuild aggregates from the event history and to apply events
inserted through the HTTP API, which arrive as records rather than logs.
"""

import json
from decimal import Decimal
from typing import Any

from app.models.enums import ContractEventType as E
from app.services.event_processor.handlers import reward_beneficiary, reward_direction
from app.services.event_processor.types import (
    AdjustRewards,
    AggregateDelta,
    EnsurePackageStats,
    EnsureUser,
    EventRecordData,
    SetAscensionCounters,
    SetPackageReferralCount,
    SetReferralCount,
)

_REGISTERING: frozenset[str] = frozenset({
    E.NODE_PURCHASED,
    E.USER_REGISTERED,
    E.DISCOUNTED_NODE_PURCHASED,
})


def _payload(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return loaded if isinstance(loaded, dict) else {}


def deltas_from_record(
    event_type: str,
    user_address: str,
    amount: Decimal,
    package_id: int | None,
    referrer_address: str | None,
    event_data: str | dict[str, Any] | None,
) -> list[AggregateDelta]:
    """
    Re-derive the aggregate effect of a stored event.

    Args:
        event_type: Contract event name
        user_address: Subject address
        amount: Event amount in token units
        package_id: Package column value
        referrer_address: Counterparty column value
        event_data: JSON payload (text or already parsed)

    Returns:
        Deltas equivalent to what the live handler produced
    """
    payload = _payload(event_data)
    deltas: list[AggregateDelta] = []

    if user_address and event_type in _REGISTERING:
        deltas.append(EnsureUser(user_address, registered=True))
        if package_id is not None:
            deltas.append(EnsurePackageStats(user_address, package_id))

    # The referred user is created without being marked registered
    if event_type == E.REFERRAL_REGISTERED and user_address:
        deltas.append(EnsureUser(user_address))
    if event_type == E.REFERRAL_REGISTERED_AND_REWARD_DISTRIBUTED and referrer_address:
        deltas.append(EnsureUser(referrer_address))

    direction = reward_direction(event_type)
    if direction:
        beneficiary = reward_beneficiary(event_type, user_address, referrer_address)
        if beneficiary:
            deltas.append(AdjustRewards(
                beneficiary,
                amount if direction > 0 else -amount,
                package_id if direction > 0 else None,
            ))

    if event_type == E.REFERRAL_REGISTERED and referrer_address:
        if "totalReferralCount" in payload:
            deltas.append(SetReferralCount(referrer_address, int(payload["totalReferralCount"])))
        if package_id is not None and "packageReferralCount" in payload:
            deltas.append(SetPackageReferralCount(
                referrer_address, package_id, int(payload["packageReferralCount"])
            ))

    if event_type == E.BULK_REFERRAL_REWARD_EARNED and user_address and package_id is not None:
        deltas.append(SetAscensionCounters(
            address=user_address,
            package_id=package_id,
            referrals=int(payload.get("referralCount", 0)),
            sales_total=Decimal(str(payload.get("salesTotal", "0"))),
            rewards_claimed=amount,
        ))

    return deltas


def deltas_for(record: EventRecordData) -> list[AggregateDelta]:
    """Shorthand for an in-memory EventRecordData."""
    return deltas_from_record(
        record.event_type,
        record.user_address,
        record.amount,
        record.package_id,
        record.referrer_address,
        record.payload,
    )

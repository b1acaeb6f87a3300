"""
Per-event handlers.

Each handler is a pure function of (decoded event, block time) returning
the event record to append and the aggregate deltas it implies. The
EVENT_HANDLERS table maps every ContractEventType to exactly one handler.
"""

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.config.constants import SYSTEM_SUBJECT
from app.models.enums import ContractEventType as E
from app.services.event_decoder.decoder import DecodedEvent
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

Handler = Callable[[DecodedEvent, datetime], ProcessedEvent]


def _amount(value: str | None) -> Decimal:
    return Decimal(value) if value is not None else Decimal("0")


def _record(
    event: DecodedEvent,
    timestamp: datetime,
    subject: str = SYSTEM_SUBJECT,
    amount: str | None = None,
    package_id: int | None = None,
    counterparty: str | None = None,
    payload: dict[str, Any] | None = None,
) -> EventRecordData:
    return EventRecordData(
        event_type=event.name,
        user_address=subject,
        transaction_hash=event.log.transaction_hash,
        block_number=event.log.block_number,
        log_index=event.log.log_index,
        timestamp=timestamp,
        amount=_amount(amount),
        package_id=package_id,
        referrer_address=counterparty,
        payload=payload or {},
    )


def _processed(record: EventRecordData, *deltas: AggregateDelta) -> ProcessedEvent:
    return ProcessedEvent(record=record, deltas=tuple(deltas))


# ---------------------------------------------------------------------------
# Package catalog
# ---------------------------------------------------------------------------


def handle_node_package_added(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        package_id=f["id"],
        payload={
            "id": f["id"], "name": f["name"], "price": f["price"],
            "duration": f["duration"], "roiPercentage": f["roiPercentage"],
        },
    )
    return _processed(record, UpsertPackage(
        package_id=f["id"], name=f["name"], price=Decimal(f["price"]),
        duration=f["duration"], roi_percentage=f["roiPercentage"], is_active=True,
    ))


def handle_node_package_updated(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        package_id=f["id"],
        payload={
            "id": f["id"], "name": f["name"], "price": f["price"],
            "duration": f["duration"], "roiPercentage": f["roiPercentage"],
            "isActive": f["isActive"],
        },
    )
    return _processed(record, UpsertPackage(
        package_id=f["id"], name=f["name"], price=Decimal(f["price"]),
        duration=f["duration"], roi_percentage=f["roiPercentage"],
        is_active=f["isActive"],
    ))


# ---------------------------------------------------------------------------
# Purchase / registration
# ---------------------------------------------------------------------------


def handle_node_purchased(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        package_id=f["packageId"],
        payload={
            "nodeId": f["currentNodeId"],
            "purchaseTime": f["purchaseTime"],
            "expiryTime": f["expiryTime"],
        },
    )
    return _processed(
        record,
        EnsureUser(f["user"], registered=True),
        EnsurePackageStats(f["user"], f["packageId"]),
    )


def handle_user_registered(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(event, timestamp, subject=f["user"], package_id=f["packageId"])
    return _processed(
        record,
        EnsureUser(f["user"], registered=True),
        EnsurePackageStats(f["user"], f["packageId"]),
    )


def handle_discounted_node_purchased(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["rewardsUsed"],
        package_id=f["packageId"],
        payload={
            "originalPrice": f["originalPrice"],
            "discountedPrice": f["discountedPrice"],
        },
    )
    return _processed(
        record,
        EnsureUser(f["user"], registered=True),
        EnsurePackageStats(f["user"], f["packageId"]),
        AdjustRewards(f["user"], -Decimal(f["rewardsUsed"])),
    )


def handle_first_time_user_fee_collected(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["feeAmount"],
        package_id=f["packageId"],
        payload={"percentage": f["percentage"], "totalCollected": f["totalCollected"]},
    )
    return _processed(record, EnsureUser(f["user"]))


# ---------------------------------------------------------------------------
# Referrals and rewards
# ---------------------------------------------------------------------------


def handle_referral_registered(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        package_id=f["packageId"],
        counterparty=f["referrer"],
        payload={
            "packageReferralCount": f["packageReferralCount"],
            "totalReferralCount": f["totalReferralCount"],
        },
    )
    return _processed(
        record,
        EnsureUser(f["user"]),
        SetReferralCount(f["referrer"], f["totalReferralCount"]),
        SetPackageReferralCount(f["referrer"], f["packageId"], f["packageReferralCount"]),
    )


def handle_referral_reward_earned(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["referrer"],
        amount=f["rewardAmount"],
        package_id=f["packageId"],
        counterparty=f["user"],
        payload={"level": f["level"]},
    )
    return _processed(
        record,
        AdjustRewards(f["referrer"], Decimal(f["rewardAmount"]), f["packageId"]),
    )


def handle_referral_registered_and_reward_distributed(
    event: DecodedEvent, timestamp: datetime
) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["referrer"],
        amount=f["rewardAmount"],
        package_id=f["packageId"],
        counterparty=f["user"],
        payload={"user": f["user"], "referrer": f["referrer"], "level": f["level"]},
    )
    return _processed(
        record,
        EnsureUser(f["user"]),
        AdjustRewards(f["referrer"], Decimal(f["rewardAmount"]), f["packageId"]),
    )


def handle_bulk_referral_reward_earned(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    package_id = f["_packageId"]
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["rewardAmount"],
        package_id=package_id,
        payload={"salesTotal": f["salesTotal"], "referralCount": f["referralCount"]},
    )
    return _processed(
        record,
        AdjustRewards(f["user"], Decimal(f["rewardAmount"]), package_id),
        SetAscensionCounters(
            address=f["user"],
            package_id=package_id,
            referrals=f["referralCount"],
            sales_total=Decimal(f["salesTotal"]),
            rewards_claimed=Decimal(f["rewardAmount"]),
        ),
    )


def handle_add_booster_reward(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(event, timestamp, subject=f["user"], amount=f["boosterReward"])
    return _processed(record, AdjustRewards(f["user"], Decimal(f["boosterReward"])))


def _handle_node_reward(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    """UserHoldReward / UserReleaseReward: reward credited to the node owner."""
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["amount"],
        package_id=f["nodeIndex"],
        payload={"packageId": f["nodeIndex"]},
    )
    return _processed(record, AdjustRewards(f["user"], Decimal(f["amount"]), f["nodeIndex"]))


def _handle_level_reward(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    """UserHoldRewardLevel / UserReleaseRewardLevel: reward credited to the referral."""
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["amount"],
        package_id=f["nodeIndex"],
        counterparty=f["referral"],
        payload={"user": f["referral"], "referral": f["user"], "level": f["level"]},
    )
    return _processed(
        record,
        EnsureUser(f["user"]),
        AdjustRewards(f["referral"], Decimal(f["amount"]), f["nodeIndex"]),
    )


def handle_rewards_claimed(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["amount"],
        payload={"packageId": f["nodeIndex"]},
    )
    return _processed(record, EnsureUser(f["user"]))


def handle_rewards_withdrawn(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(event, timestamp, subject=f["user"], amount=f["amount"])
    return _processed(record, AdjustRewards(f["user"], -Decimal(f["amount"])))


def handle_reward_withdrawal_request(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["amount"],
        payload={"timestamp": f["timestamp"]},
    )
    return _processed(record, EnsureUser(f["user"]))


def handle_liquidity_withdrawn(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["user"],
        amount=f["amount"],
        payload={
            "liquidityAddress": f["liquidityAddress"],
            "percentage": f["percentage"],
            "totalWithdrawn": f["totalWithdrawn"],
        },
    )
    return _processed(record, AdjustRewards(f["user"], -Decimal(f["amount"])))


# ---------------------------------------------------------------------------
# Prosperity fund
# ---------------------------------------------------------------------------


def handle_prosperity_fund_contribution(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        amount=f["amount"],
        payload={"newBalance": f["newBalance"]},
    )
    return _processed(record)


def handle_prosperity_fund_distributed(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    record = _record(event, timestamp, subject=f["recipient"], amount=f["amount"])
    return _processed(record, EnsureUser(f["recipient"]))


def handle_package_prosperity_fund_contribution(
    event: DecodedEvent, timestamp: datetime
) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        amount=f["amount"],
        package_id=f["packageId"],
        payload={"cycle": f["cycle"], "newBalance": f["newBalance"]},
    )
    return _processed(record)


def handle_package_prosperity_fund_distributed(
    event: DecodedEvent, timestamp: datetime
) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["recipient"],
        amount=f["amount"],
        package_id=f["packageId"],
        payload={"cycle": f["cycle"]},
    )
    return _processed(record, EnsureUser(f["recipient"]))


# ---------------------------------------------------------------------------
# Administrative (audit trail only)
# ---------------------------------------------------------------------------


def handle_admin_marketing_bonus_collected(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    f = event.fields
    return _processed(_record(event, timestamp, subject=f["admin"], amount=f["amount"]))


def handle_admin_marketing_bonus_settings_updated(
    event: DecodedEvent, timestamp: datetime
) -> ProcessedEvent:
    f = event.fields
    record = _record(
        event, timestamp,
        subject=f["adminWallet"],
        payload={"enabled": f["enabled"], "percentage": f["percentage"]},
    )
    return _processed(record)


def _handle_settings(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    """Contract-level settings change; every field goes to the payload."""
    return _processed(_record(event, timestamp, payload=dict(event.fields)))


def handle_passthrough(event: DecodedEvent, timestamp: datetime) -> ProcessedEvent:
    """ABI event without a dedicated handler: raw payload, no deltas."""
    return _processed(_record(event, timestamp, payload=dict(event.fields)))


EVENT_HANDLERS: dict[E, Handler] = {
    E.NODE_PACKAGE_ADDED: handle_node_package_added,
    E.NODE_PACKAGE_UPDATED: handle_node_package_updated,
    E.NODE_PURCHASED: handle_node_purchased,
    E.USER_REGISTERED: handle_user_registered,
    E.DISCOUNTED_NODE_PURCHASED: handle_discounted_node_purchased,
    E.FIRST_TIME_USER_FEE_COLLECTED: handle_first_time_user_fee_collected,
    E.REFERRAL_REGISTERED: handle_referral_registered,
    E.REFERRAL_REWARD_EARNED: handle_referral_reward_earned,
    E.REFERRAL_REGISTERED_AND_REWARD_DISTRIBUTED: handle_referral_registered_and_reward_distributed,
    E.BULK_REFERRAL_REWARD_EARNED: handle_bulk_referral_reward_earned,
    E.ADD_BOOSTER_REWARD: handle_add_booster_reward,
    E.USER_HOLD_REWARD: _handle_node_reward,
    E.USER_RELEASE_REWARD: _handle_node_reward,
    E.USER_HOLD_REWARD_LEVEL: _handle_level_reward,
    E.USER_RELEASE_REWARD_LEVEL: _handle_level_reward,
    E.REWARDS_CLAIMED: handle_rewards_claimed,
    E.REWARDS_WITHDRAWN: handle_rewards_withdrawn,
    E.REWARD_WITHDRAWAL_REQUEST: handle_reward_withdrawal_request,
    E.LIQUIDITY_WITHDRAWN: handle_liquidity_withdrawn,
    E.PROSPERITY_FUND_CONTRIBUTION: handle_prosperity_fund_contribution,
    E.PROSPERITY_FUND_DISTRIBUTED: handle_prosperity_fund_distributed,
    E.PACKAGE_PROSPERITY_FUND_CONTRIBUTION: handle_package_prosperity_fund_contribution,
    E.PACKAGE_PROSPERITY_FUND_DISTRIBUTED: handle_package_prosperity_fund_distributed,
    E.ADMIN_MARKETING_BONUS_COLLECTED: handle_admin_marketing_bonus_collected,
    E.ADMIN_MARKETING_BONUS_SETTINGS_UPDATED: handle_admin_marketing_bonus_settings_updated,
    E.MIN_REFERRALS_UPDATED: _handle_settings,
    E.UPDATE_BOOSTER_PERCENTAGE: _handle_settings,
    E.PROSPERITY_FUND_SETTINGS_UPDATED: _handle_settings,
    E.LIQUIDITY_WITHDRAWAL_SETTINGS_UPDATED: _handle_settings,
    E.FIRST_TIME_USER_FEE_SETTINGS_UPDATED: _handle_settings,
    E.SEVEN_LEVEL_REFERRAL_PERCENTAGE_UPDATED: _handle_settings,
    E.REWARDS_DISCOUNT_SETTINGS_UPDATED: _handle_settings,
}

# Reward direction per event type, used when rebuilding totals from history
REWARD_INCREASING: frozenset[E] = frozenset({
    E.REFERRAL_REWARD_EARNED,
    E.ADD_BOOSTER_REWARD,
    E.BULK_REFERRAL_REWARD_EARNED,
    E.REFERRAL_REGISTERED_AND_REWARD_DISTRIBUTED,
    E.USER_HOLD_REWARD,
    E.USER_RELEASE_REWARD,
    E.USER_HOLD_REWARD_LEVEL,
    E.USER_RELEASE_REWARD_LEVEL,
})
REWARD_DECREASING: frozenset[E] = frozenset({
    E.DISCOUNTED_NODE_PURCHASED,
    E.LIQUIDITY_WITHDRAWN,
    E.REWARDS_WITHDRAWN,
})

# Level rewards are credited to the counterparty, not the subject
_COUNTERPARTY_CREDITED: frozenset[E] = frozenset({
    E.USER_HOLD_REWARD_LEVEL,
    E.USER_RELEASE_REWARD_LEVEL,
})


def reward_direction(event_type: str) -> int:
    """
    Sign of an event's effect on the beneficiary's reward total.

    Returns:
        1 for reward-earning, -1 for reward-consuming, 0 otherwise
    """
    try:
        kind = E(event_type)
    except ValueError:
        return 0
    if kind in REWARD_INCREASING:
        return 1
    if kind in REWARD_DECREASING:
        return -1
    return 0


def reward_beneficiary(event_type: str, subject: str, counterparty: str | None) -> str:
    """Address whose reward total an event changes."""
    if event_type in _COUNTERPARTY_CREDITED and counterparty:
        return counterparty
    return subject

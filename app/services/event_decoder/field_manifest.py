"""
Field-kind manifest for contract events.

Every event field is declared explicitly as one of the FieldKind values.
Scaling is driven only by this table, never by the field name.
"""

from enum import StrEnum


class FieldKind(StrEnum):
    """How a decoded ABI value is normalized."""

    MONETARY = "monetary"  # 18-decimal token amount, becomes a decimal string
    COUNT = "count"  # plain integer (counters, percentages, levels, durations)
    TIMESTAMP = "timestamp"  # unix seconds, plain integer
    ID = "id"  # package ids, node ids, plain integer
    ADDRESS = "address"  # lowercase 0x address
    FLAG = "flag"  # boolean
    RAW = "raw"  # passed through as text


M = FieldKind.MONETARY
C = FieldKind.COUNT
T = FieldKind.TIMESTAMP
I = FieldKind.ID  # noqa: E741
A = FieldKind.ADDRESS
F = FieldKind.FLAG
R = FieldKind.RAW


FIELD_MANIFEST: dict[str, dict[str, FieldKind]] = {
    "NodePackageAdded": {
        "id": I, "name": R, "price": M, "duration": C, "roiPercentage": C,
    },
    "NodePackageUpdated": {
        "id": I, "name": R, "price": M, "duration": C, "roiPercentage": C,
        "isActive": F,
    },
    "NodePurchased": {
        "user": A, "packageId": I, "purchaseTime": T, "expiryTime": T,
        "currentNodeId": I,
    },
    "UserRegistered": {"user": A, "packageId": I},
    "DiscountedNodePurchased": {
        "user": A, "packageId": I, "originalPrice": M, "discountedPrice": M,
        "rewardsUsed": M,
    },
    "FirstTimeUserFeeCollected": {
        "user": A, "packageId": I, "feeAmount": M, "percentage": C,
        "totalCollected": M,
    },
    "ReferralRegistered": {
        "user": A, "referrer": A, "packageId": I, "packageReferralCount": C,
        "totalReferralCount": C,
    },
    "ReferralRewardEarned": {
        "referrer": A, "user": A, "packageId": I, "level": C, "rewardAmount": M,
    },
    "ReferralRegisteredAndRewardDistributed": {
        "user": A, "referrer": A, "packageId": I, "level": C, "rewardAmount": M,
    },
    "BulkReferralRewardEarned": {
        "user": A, "_packageId": I, "rewardAmount": M, "salesTotal": M,
        "referralCount": C,
    },
    "AddBoosterReward": {"user": A, "boosterReward": M},
    "UserHoldReward": {"user": A, "amount": M, "nodeIndex": I},
    "UserReleaseReward": {"user": A, "amount": M, "nodeIndex": I},
    "UserHoldRewardLevel": {
        "user": A, "amount": M, "nodeIndex": I, "referral": A, "level": C,
    },
    "UserReleaseRewardLevel": {
        "user": A, "amount": M, "nodeIndex": I, "referral": A, "level": C,
    },
    "RewardsClaimed": {"user": A, "amount": M, "nodeIndex": I},
    "RewardsWithdrawn": {"user": A, "amount": M},
    "RewardWithdrawalRequest": {"user": A, "amount": M, "timestamp": T},
    "LiquidityWithdrawn": {
        "user": A, "liquidityAddress": A, "amount": M, "percentage": C,
        "totalWithdrawn": M,
    },
    "ProsperityFundContribution": {"amount": M, "newBalance": M},
    "ProsperityFundDistributed": {"recipient": A, "amount": M},
    "PackageProsperityFundContribution": {
        "packageId": I, "cycle": C, "amount": M, "newBalance": M,
    },
    "PackageProsperityFundDistributed": {
        "recipient": A, "packageId": I, "cycle": C, "amount": M,
    },
    "AdminMarketingBonusCollected": {"admin": A, "amount": M},
    "AdminMarketingBonusSettingsUpdated": {
        "adminWallet": A, "enabled": F, "percentage": C,
    },
    "MinReferralsUpdated": {"oldValue": C, "newValue": C},
    "UpdateBoosterPercentage": {"boosterPercentage": C},
    "ProsperityFundSettingsUpdated": {
        "enabled": F, "percentage": C, "distributionDays": C,
    },
    "LiquidityWithdrawalSettingsUpdated": {
        "enabled": F, "percentage": C, "liquidityAddress": A,
    },
    "FirstTimeUserFeeSettingsUpdated": {"percentage": C, "feeAddress": A},
    "SevenLevelReferralPercentageUpdated": {"index": C, "percentage": C},
    "RewardsDiscountSettingsUpdated": {"enabled": F, "percentage": C},
    "OwnershipTransferred": {"previousOwner": A, "newOwner": A},
}


def field_kind(event_name: str, field_name: str) -> FieldKind | None:
    """Look up the declared kind of one event field."""
    return FIELD_MANIFEST.get(event_name, {}).get(field_name)

"""
Enums shared by models and services.
"""

from enum import StrEnum


class ContractEventType(StrEnum):
    """Contract events mirrored into the store."""

    # Package catalog
    NODE_PACKAGE_ADDED = "NodePackageAdded"
    NODE_PACKAGE_UPDATED = "NodePackageUpdated"

    # Purchase / registration
    NODE_PURCHASED = "NodePurchased"
    USER_REGISTERED = "UserRegistered"
    DISCOUNTED_NODE_PURCHASED = "DiscountedNodePurchased"
    FIRST_TIME_USER_FEE_COLLECTED = "FirstTimeUserFeeCollected"

    # Referrals and rewards
    REFERRAL_REGISTERED = "ReferralRegistered"
    REFERRAL_REWARD_EARNED = "ReferralRewardEarned"
    REFERRAL_REGISTERED_AND_REWARD_DISTRIBUTED = "ReferralRegisteredAndRewardDistributed"
    BULK_REFERRAL_REWARD_EARNED = "BulkReferralRewardEarned"
    ADD_BOOSTER_REWARD = "AddBoosterReward"
    USER_HOLD_REWARD = "UserHoldReward"
    USER_RELEASE_REWARD = "UserReleaseReward"
    USER_HOLD_REWARD_LEVEL = "UserHoldRewardLevel"
    USER_RELEASE_REWARD_LEVEL = "UserReleaseRewardLevel"
    REWARDS_CLAIMED = "RewardsClaimed"
    REWARDS_WITHDRAWN = "RewardsWithdrawn"
    REWARD_WITHDRAWAL_REQUEST = "RewardWithdrawalRequest"
    LIQUIDITY_WITHDRAWN = "LiquidityWithdrawn"

    # Prosperity fund
    PROSPERITY_FUND_CONTRIBUTION = "ProsperityFundContribution"
    PROSPERITY_FUND_DISTRIBUTED = "ProsperityFundDistributed"
    PACKAGE_PROSPERITY_FUND_CONTRIBUTION = "PackageProsperityFundContribution"
    PACKAGE_PROSPERITY_FUND_DISTRIBUTED = "PackageProsperityFundDistributed"

    # Administrative
    ADMIN_MARKETING_BONUS_COLLECTED = "AdminMarketingBonusCollected"
    ADMIN_MARKETING_BONUS_SETTINGS_UPDATED = "AdminMarketingBonusSettingsUpdated"
    MIN_REFERRALS_UPDATED = "MinReferralsUpdated"
    UPDATE_BOOSTER_PERCENTAGE = "UpdateBoosterPercentage"
    PROSPERITY_FUND_SETTINGS_UPDATED = "ProsperityFundSettingsUpdated"
    LIQUIDITY_WITHDRAWAL_SETTINGS_UPDATED = "LiquidityWithdrawalSettingsUpdated"
    FIRST_TIME_USER_FEE_SETTINGS_UPDATED = "FirstTimeUserFeeSettingsUpdated"
    SEVEN_LEVEL_REFERRAL_PERCENTAGE_UPDATED = "SevenLevelReferralPercentageUpdated"
    REWARDS_DISCOUNT_SETTINGS_UPDATED = "RewardsDiscountSettingsUpdated"


class SyncPhase(StrEnum):
    """Sync coordinator states."""

    BOOTSTRAPPING = "bootstrapping"
    CATCHING_UP = "catching_up"
    LIVE = "live"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class LiveTransport(StrEnum):
    """How the coordinator learns about new logs once caught up."""

    PUSH = "push"
    POLLING = "polling"

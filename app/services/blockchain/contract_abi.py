"""
Referral/rewards contract ABI.

Only the events the indexer mirrors and the two catalog view functions
read by the package sync are listed.
"""

from typing import Any


def _event(name: str, *inputs: tuple[str, str, bool]) -> dict[str, Any]:
    """Build an event ABI entry from (type, name, indexed) triples."""
    return {
        "anonymous": False,
        "name": name,
        "type": "event",
        "inputs": [
            {"indexed": indexed, "internalType": typ, "name": field, "type": typ}
            for typ, field, indexed in inputs
        ],
    }


def _address(name: str, indexed: bool = False) -> tuple[str, str, bool]:
    return ("address", name, indexed)


def _uint(name: str, indexed: bool = False) -> tuple[str, str, bool]:
    return ("uint256", name, indexed)


def _bool(name: str) -> tuple[str, str, bool]:
    return ("bool", name, False)


def _string(name: str) -> tuple[str, str, bool]:
    return ("string", name, False)


CONTRACT_EVENTS_ABI: list[dict[str, Any]] = [
    # Package catalog
    _event(
        "NodePackageAdded",
        _uint("id", True), _string("name"), _uint("price"),
        _uint("duration"), _uint("roiPercentage"),
    ),
    _event(
        "NodePackageUpdated",
        _uint("id", True), _string("name"), _uint("price"),
        _uint("duration"), _uint("roiPercentage"), _bool("isActive"),
    ),
    # Purchase / registration
    _event(
        "NodePurchased",
        _address("user", True), _uint("packageId", True),
        _uint("purchaseTime"), _uint("expiryTime"), _uint("currentNodeId"),
    ),
    _event("UserRegistered", _address("user", True), _uint("packageId", True)),
    _event(
        "DiscountedNodePurchased",
        _address("user", True), _uint("packageId", True),
        _uint("originalPrice"), _uint("discountedPrice"), _uint("rewardsUsed"),
    ),
    _event(
        "FirstTimeUserFeeCollected",
        _address("user", True), _uint("packageId", True),
        _uint("feeAmount"), _uint("percentage"), _uint("totalCollected"),
    ),
    # Referrals and rewards
    _event(
        "ReferralRegistered",
        _address("user", True), _address("referrer", True), _uint("packageId", True),
        _uint("packageReferralCount"), _uint("totalReferralCount"),
    ),
    _event(
        "ReferralRewardEarned",
        _address("referrer", True), _address("user", True), _uint("packageId", True),
        _uint("level"), _uint("rewardAmount"),
    ),
    _event(
        "ReferralRegisteredAndRewardDistributed",
        _address("user", True), _address("referrer", True), _uint("packageId", True),
        _uint("level"), _uint("rewardAmount"),
    ),
    _event(
        "BulkReferralRewardEarned",
        _address("user", True), _uint("_packageId", True),
        _uint("rewardAmount"), _uint("salesTotal"), _uint("referralCount"),
    ),
    _event("AddBoosterReward", _address("user", True), _uint("boosterReward")),
    _event(
        "UserHoldReward",
        _address("user", True), _uint("amount"), _uint("nodeIndex"),
    ),
    _event(
        "UserReleaseReward",
        _address("user", True), _uint("amount"), _uint("nodeIndex"),
    ),
    _event(
        "UserHoldRewardLevel",
        _address("user", True), _uint("amount"), _uint("nodeIndex"),
        _address("referral"), _uint("level"),
    ),
    _event(
        "UserReleaseRewardLevel",
        _address("user", True), _uint("amount"), _uint("nodeIndex"),
        _address("referral"), _uint("level"),
    ),
    _event(
        "RewardsClaimed",
        _address("user", True), _uint("amount"), _uint("nodeIndex"),
    ),
    _event("RewardsWithdrawn", _address("user", True), _uint("amount")),
    _event(
        "RewardWithdrawalRequest",
        _address("user", True), _uint("amount"), _uint("timestamp"),
    ),
    _event(
        "LiquidityWithdrawn",
        _address("user", True), _address("liquidityAddress"), _uint("amount"),
        _uint("percentage"), _uint("totalWithdrawn"),
    ),
    # Prosperity fund
    _event("ProsperityFundContribution", _uint("amount"), _uint("newBalance")),
    _event(
        "ProsperityFundDistributed",
        _address("recipient", True), _uint("amount"),
    ),
    _event(
        "PackageProsperityFundContribution",
        _uint("packageId", True), _uint("cycle", True),
        _uint("amount"), _uint("newBalance"),
    ),
    _event(
        "PackageProsperityFundDistributed",
        _address("recipient", True), _uint("packageId", True),
        _uint("cycle"), _uint("amount"),
    ),
    # Administrative
    _event(
        "AdminMarketingBonusCollected",
        _address("admin", True), _uint("amount"),
    ),
    _event(
        "AdminMarketingBonusSettingsUpdated",
        _address("adminWallet", True), _bool("enabled"), _uint("percentage"),
    ),
    _event("MinReferralsUpdated", _uint("oldValue"), _uint("newValue")),
    _event("UpdateBoosterPercentage", _uint("boosterPercentage")),
    _event(
        "ProsperityFundSettingsUpdated",
        _bool("enabled"), _uint("percentage"), _uint("distributionDays"),
    ),
    _event(
        "LiquidityWithdrawalSettingsUpdated",
        _bool("enabled"), _uint("percentage"), _address("liquidityAddress"),
    ),
    _event(
        "FirstTimeUserFeeSettingsUpdated",
        _uint("percentage"), _address("feeAddress"),
    ),
    _event(
        "SevenLevelReferralPercentageUpdated",
        _uint("index"), _uint("percentage"),
    ),
    _event(
        "RewardsDiscountSettingsUpdated",
        _bool("enabled"), _uint("percentage"),
    ),
    # Inherited from Ownable; mirrored as a plain audit record
    _event(
        "OwnershipTransferred",
        _address("previousOwner", True), _address("newOwner", True),
    ),
]

CONTRACT_VIEW_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "nodePackageCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "nodePackages",
        "outputs": [
            {"internalType": "string", "name": "name", "type": "string"},
            {"internalType": "uint256", "name": "price", "type": "uint256"},
            {"internalType": "uint256", "name": "duration", "type": "uint256"},
            {"internalType": "uint256", "name": "roiPercentage", "type": "uint256"},
            {"internalType": "bool", "name": "isActive", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

CONTRACT_ABI: list[dict[str, Any]] = CONTRACT_EVENTS_ABI + CONTRACT_VIEW_ABI

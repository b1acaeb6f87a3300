"""
JSON serializers for mirrored rows.

Responses use camelCase keys; token amounts are decimal strings.
"""

import json
from decimal import Decimal
from typing import Any

from app.models.blockchain_sync_state import BlockchainSyncState
from app.models.contract_event import ContractEvent
from app.models.node_package import NodePackage
from app.models.user import User
from app.models.user_package_stats import UserPackageStats
from app.utils.datetime_utils import to_iso


def decimal_str(value: Decimal | None) -> str:
    """
    Render a token amount without trailing zeros, keeping one decimal.

    Examples:
        >>> decimal_str(Decimal("3.000000000000000000"))
        '3.0'
        >>> decimal_str(Decimal("0.125000"))
        '0.125'
    """
    if value is None:
        return "0.0"
    text = format(Decimal(value).normalize(), "f")
    return text if "." in text else f"{text}.0"


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "address": user.address,
        "totalReferrals": user.total_referrals,
        "totalRewards": decimal_str(user.total_rewards),
        "isRegistered": user.is_registered,
        "ascensionBonusReferrals": user.ascension_bonus_referrals,
        "ascensionBonusSalesTotal": decimal_str(user.ascension_bonus_sales_total),
        "ascensionBonusRewardsClaimed": decimal_str(user.ascension_bonus_rewards_claimed),
        "createdAt": to_iso(user.created_at),
        "updatedAt": to_iso(user.updated_at),
    }


def serialize_package_stats(
    stats: UserPackageStats, user_address: str | None = None
) -> dict[str, Any]:
    data = {
        "id": stats.id,
        "userId": stats.user_id,
        "packageId": stats.package_id,
        "referralCount": stats.referral_count,
        "totalRewards": decimal_str(stats.total_rewards),
        "ascensionBonusReferrals": stats.ascension_bonus_referrals,
        "ascensionBonusSalesTotal": decimal_str(stats.ascension_bonus_sales_total),
        "ascensionBonusRewardsClaimed": decimal_str(stats.ascension_bonus_rewards_claimed),
    }
    if user_address is not None:
        data["userAddress"] = user_address
    return data


def serialize_event(event: ContractEvent) -> dict[str, Any]:
    try:
        payload = json.loads(event.event_data) if event.event_data else {}
    except json.JSONDecodeError:
        payload = {"raw": event.event_data}

    return {
        "id": event.id,
        "eventType": event.event_type,
        "userAddress": event.user_address,
        "packageId": event.package_id,
        "amount": decimal_str(event.amount),
        "referrerAddress": event.referrer_address,
        "transactionHash": event.transaction_hash,
        "blockNumber": event.block_number,
        "logIndex": event.log_index,
        "timestamp": to_iso(event.timestamp),
        "eventData": payload,
    }


def serialize_package(package: NodePackage) -> dict[str, Any]:
    return {
        "id": package.package_id,
        "name": package.name,
        "price": decimal_str(package.price),
        "duration": package.duration,
        "roiPercentage": package.roi_percentage,
        "isActive": package.is_active,
        "updatedAt": to_iso(package.updated_at),
    }


def serialize_sync_state(state: BlockchainSyncState | None) -> dict[str, Any] | None:
    if state is None:
        return None
    return {
        "contract": state.stream_key,
        "firstSyncedBlock": state.first_synced_block,
        "lastSyncedBlock": state.last_synced_block,
        "totalEvents": state.total_events,
        "skippedLogs": state.skipped_logs,
        "fullSyncCompleted": state.full_sync_completed,
        "fullSyncCompletedAt": to_iso(state.full_sync_completed_at),
        "lastError": state.last_error,
        "errorCount": state.error_count,
        "updatedAt": to_iso(state.updated_at),
    }


def page_payload(
    key: str, items: list[dict[str, Any]], page: int, limit: int, total: int
) -> dict[str, Any]:
    """Paginated list response."""
    return {
        key: items,
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
    }

"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.blockchain_sync_state import BlockchainSyncState
from app.models.contract_event import ContractEvent
from app.models.enums import ContractEventType, LiveTransport, SyncPhase
from app.models.node_package import NodePackage
from app.models.user import User
from app.models.user_package_stats import UserPackageStats

__all__ = [
    "Base",
    "BlockchainSyncState",
    "ContractEvent",
    "ContractEventType",
    "LiveTransport",
    "NodePackage",
    "SyncPhase",
    "User",
    "UserPackageStats",
]

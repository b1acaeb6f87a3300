"""
Blockchain services module.

Chain client with endpoint failover, websocket log subscription and the
contract ABI.
"""

from .chain_client import ChainClient
from .contract_abi import CONTRACT_ABI, CONTRACT_EVENTS_ABI, CONTRACT_VIEW_ABI
from .failover_executor import FailoverExecutor
from .raw_log import RawLog

__all__ = [
    "ChainClient",
    "CONTRACT_ABI",
    "CONTRACT_EVENTS_ABI",
    "CONTRACT_VIEW_ABI",
    "FailoverExecutor",
    "RawLog",
]

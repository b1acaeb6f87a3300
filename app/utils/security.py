"""
Security utilities for masking sensitive data in logs.

Provides functions to safely mask:
- Wallet addresses
- Transaction hashes
- RPC endpoint URLs (often carry API keys in the path)
"""

from urllib.parse import urlsplit


def mask_address(address: str | None) -> str:
    """
    Mask wallet address for logging: 0x1234...5678

    Args:
        address: Wallet address to mask

    Returns:
        Masked address showing first 6 and last 4 characters

    Examples:
        >>> mask_address("0x1234567890abcdef1234567890abcdef12345678")
        '0x1234...5678'
        >>> mask_address("")
        '***'
    """
    if not address or len(address) < 10:
        return "***"
    return f"{address[:6]}...{address[-4:]}"


def mask_tx_hash(tx_hash: str | None) -> str:
    """
    Mask transaction hash for logging.

    Examples:
        >>> mask_tx_hash("0x" + "ab" * 32)
        '0xabababab...ababab'
    """
    if not tx_hash or len(tx_hash) < 16:
        return "***"
    return f"{tx_hash[:10]}...{tx_hash[-6:]}"


def mask_rpc_url(url: str | None) -> str:
    """
    Reduce an RPC URL to scheme and host.

    Examples:
        >>> mask_rpc_url("https://polygon-mainnet.g.alchemy.com/v2/secret")
        'https://polygon-mainnet.g.alchemy.com/***'
        >>> mask_rpc_url("wss://rpc.example.org")
        'wss://rpc.example.org'
    """
    if not url:
        return "***"
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return "***"
    host = parts.hostname
    if parts.port:
        host = f"{host}:{parts.port}"
    suffix = "/***" if parts.path.strip("/") or parts.query else ""
    return f"{parts.scheme}://{host}{suffix}"

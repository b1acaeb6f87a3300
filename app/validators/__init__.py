"""
Validators package.

Provides common validation functions for API input.
"""

from app.validators.common import (
    normalize_wallet_address,
    validate_page_params,
    validate_token_amount,
    validate_wallet_address,
)


__all__ = [
    "normalize_wallet_address",
    "validate_page_params",
    "validate_token_amount",
    "validate_wallet_address",
]

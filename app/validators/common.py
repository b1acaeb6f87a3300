"""
Common validators for API input.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
"""

from decimal import Decimal, InvalidOperation

from web3 import Web3

from app.config.constants import TOKEN_DECIMALS


def validate_wallet_address(address: str) -> tuple[bool, str | None, str | None]:
    """
    Validate a wallet address.

    Args:
        address: Wallet address to validate

    Returns:
        Tuple of (is_valid, lowercase_address, error_message)

    Examples:
        >>> validate_wallet_address("0x1234567890123456789012345678901234567890")
        (True, '0x1234567890123456789012345678901234567890', None)
        >>> validate_wallet_address("invalid")
        (False, None, 'Address must start with 0x')
    """
    if not address or not isinstance(address, str):
        return False, None, "Address is empty"

    address = address.strip()
    if not address.startswith("0x"):
        return False, None, "Address must start with 0x"
    if len(address) != 42:
        return False, None, "Address must be 42 characters"
    if not Web3.is_address(address):
        return False, None, "Invalid address format"

    return True, address.lower(), None


def normalize_wallet_address(address: str) -> str:
    """
    Normalize wallet address to lowercase.

    Raises:
        ValueError: If address is invalid
    """
    is_valid, value, error = validate_wallet_address(address)
    if not is_valid:
        raise ValueError(error)
    return value


def validate_token_amount(amount: str | int | float | Decimal) -> tuple[bool, Decimal | None, str | None]:
    """
    Validate a token amount in human units.

    Args:
        amount: Amount as string or number

    Returns:
        Tuple of (is_valid, parsed_value, error_message)

    Examples:
        >>> validate_token_amount("5.0")
        (True, Decimal('5.0'), None)
        >>> validate_token_amount("-1")
        (False, None, 'Amount must be >= 0')
    """
    if isinstance(amount, bool) or amount is None:
        return False, None, "Amount is empty"

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return False, None, "Invalid amount format"

    if not value.is_finite():
        return False, None, "Amount must be a finite number"
    if value < 0:
        return False, None, "Amount must be >= 0"
    if value.as_tuple().exponent < -TOKEN_DECIMALS:
        return False, None, f"Amount has too many decimal places (maximum {TOKEN_DECIMALS})"

    return True, value, None


def validate_page_params(
    page: str | None,
    limit: str | None,
    default_limit: int,
    max_limit: int,
) -> tuple[bool, tuple[int, int] | None, str | None]:
    """
    Validate page/limit query parameters.

    Args:
        page: Raw page value (1-indexed)
        limit: Raw limit value
        default_limit: Limit when absent
        max_limit: Largest accepted limit (larger values are capped)

    Returns:
        Tuple of (is_valid, (page, limit), error_message)
    """
    try:
        page_value = int(page) if page not in (None, "") else 1
        limit_value = int(limit) if limit not in (None, "") else default_limit
    except ValueError:
        return False, None, "page and limit must be integers"

    if page_value < 1 or limit_value < 1:
        return False, None, "page and limit must be positive"

    return True, (page_value, min(limit_value, max_limit)), None

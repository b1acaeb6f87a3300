"""
RPC helpers: timeouts, backoff and endpoint error classification.
"""

import asyncio
from typing import Any

from loguru import logger

from app.config.constants import RANGE_TOO_LARGE_MARKERS, RPC_HTTP_TIMEOUT


class RpcTimeoutError(Exception):
    """Raised when a blockchain RPC call times out."""


async def with_timeout(
    coro: Any,
    timeout: float = RPC_HTTP_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        RpcTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.warning(error_msg)
        raise RpcTimeoutError(error_msg) from e


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 30.0) -> float:
    """
    Capped exponential backoff.

    Args:
        attempt: 1-based attempt number
        base: Delay for the first attempt
        cap: Maximum delay

    Returns:
        Delay in seconds: base, 2*base, 4*base ... never above cap

    Examples:
        >>> [backoff_delay(n, base=5, cap=30) for n in (1, 2, 3, 4)]
        [5, 10, 20, 30]
    """
    if attempt < 1:
        return 0
    exponent = min(attempt - 1, 32)
    return min(cap, base * (2 ** exponent))


def is_range_error(error: BaseException) -> bool:
    """
    Check if an endpoint error means the log query span was too large.

    Providers word this differently ("block range is too large",
    "query returned more than 10000 results", "limit exceeded"), and
    web3 surfaces the JSON-RPC error as a dict inside the exception args.
    """
    message = str(error).lower()
    return any(marker in message for marker in RANGE_TOO_LARGE_MARKERS)

"""Unit tests for RPC helpers and the error taxonomy."""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from app.services.blockchain.rpc_wrapper import (
    RpcTimeoutError,
    backoff_delay,
    is_range_error,
    with_timeout,
)
from app.utils.exceptions import (
    RETRYABLE_ERRORS,
    DecodeError,
    PersistenceError,
    RangeTooLarge,
    RpcUnavailable,
    SubscriptionDropped,
    SubscriptionFailed,
    UnknownEvent,
)


class TestBackoffDelay:
    """Tests for capped exponential backoff."""

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(0, 0), (1, 1.0), (2, 2.0), (3, 4.0), (5, 16.0), (6, 30.0), (100, 30.0)],
    )
    def test_doubles_until_cap(self, attempt, expected):
        assert backoff_delay(attempt, base=1.0, cap=30.0) == expected

    def test_custom_base(self):
        assert backoff_delay(3, base=0.5, cap=10) == 2.0


class TestRangeErrorDetection:
    """Tests for is_range_error."""

    @pytest.mark.parametrize(
        "message",
        [
            "block range is too large",
            "query returned more than 10000 results",
            "Log response size exceeded.",
            "{'code': -32602, 'message': 'exceed maximum block range: 5000'}",
            "Limit Exceeded",
        ],
    )
    def test_provider_messages(self, message):
        assert is_range_error(ValueError(message))

    def test_unrelated_error(self):
        assert not is_range_error(ConnectionError("connection refused"))


class TestWithTimeout:
    """Tests for with_timeout."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def quick():
            return 7

        assert await with_timeout(quick(), timeout=1) == 7

    @pytest.mark.asyncio
    async def test_raises_on_timeout(self):
        with pytest.raises(RpcTimeoutError):
            await with_timeout(asyncio.sleep(1), timeout=0.01, operation_name="slow call")


class TestErrorCategories:
    """Tests for retryable and skippable classification."""

    @pytest.mark.parametrize(
        "error",
        [
            RpcUnavailable("eth_blockNumber", 3),
            RangeTooLarge(1, 100),
            SubscriptionDropped("closed"),
            PersistenceError("locked"),
        ],
    )
    def test_retryable(self, error):
        assert isinstance(error, RETRYABLE_ERRORS)

    @pytest.mark.parametrize(
        "error",
        [UnknownEvent("0x" + "00" * 32), DecodeError("AddBoosterReward", "short data")],
    )
    def test_single_log_errors_not_retried(self, error):
        assert not isinstance(error, RETRYABLE_ERRORS)

    def test_database_errors_are_not_retried_directly(self):
        assert not isinstance(OperationalError("SELECT 1", {}, Exception("locked")), RETRYABLE_ERRORS)

    def test_subscribe_failure_is_a_dropped_subscription(self):
        assert isinstance(SubscriptionFailed("refused"), SubscriptionDropped)

    def test_messages_carry_context(self):
        error = RpcUnavailable("eth_getLogs(1-10)", 3, ConnectionError("reset"))

        assert "eth_getLogs(1-10)" in str(error)
        assert "3 attempts" in str(error)

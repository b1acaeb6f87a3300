"""
Exception handling utilities.

Defines the indexer's error taxonomy and how each category is handled.
"""


class IndexerError(Exception):
    """Base class for indexer pipeline errors."""


class RpcUnavailable(IndexerError):
    """Every configured RPC endpoint failed for a call."""

    def __init__(self, operation: str, attempts: int, last_error: Exception | None = None) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed on all endpoints after {attempts} attempts: {last_error}"
        )


class RangeTooLarge(IndexerError):
    """Endpoint rejected a log query span."""

    def __init__(self, from_block: int, to_block: int, message: str = "") -> None:
        self.from_block = from_block
        self.to_block = to_block
        super().__init__(
            f"Log range {from_block}-{to_block} rejected as too large: {message}"
        )


class SubscriptionDropped(IndexerError):
    """Push subscription transport was lost and must be rebuilt."""


class SubscriptionFailed(SubscriptionDropped):
    """Connect or eth_subscribe failed before the subscription went live."""


class UnknownEvent(IndexerError):
    """Log topic matches no known event signature."""

    def __init__(self, topic0: str | None) -> None:
        self.topic0 = topic0
        super().__init__(f"Unknown event topic: {topic0}")


class DecodeError(IndexerError):
    """Known signature but the log payload could not be decoded."""

    def __init__(self, event_name: str, reason: str) -> None:
        self.event_name = event_name
        super().__init__(f"Cannot decode {event_name}: {reason}")


class PersistenceError(IndexerError):
    """Mirror Store write failed."""


# Exception categories based on handling strategy

# Retried by the sync coordinator with backoff
RETRYABLE_ERRORS = (
    RpcUnavailable,
    RangeTooLarge,
    SubscriptionDropped,
    PersistenceError,
)

# Raised by an event handler on fields it cannot interpret; handled per log
# like a decode failure
PROCESSING_ERRORS = (
    KeyError,
    ValueError,
    TypeError,
    ArithmeticError,
)

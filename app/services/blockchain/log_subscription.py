"""
WebSocket log subscription.

One ``eth_subscribe("logs")`` session per instance. When the transport
breaks the stream raises SubscriptionDropped; the caller builds a new
subscription instead of resuming, since the node forgets the old one.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import websockets
from loguru import logger

from app.config.constants import WS_SUBSCRIBE_TIMEOUT
from app.services.blockchain.raw_log import RawLog
from app.utils.exceptions import SubscriptionDropped, SubscriptionFailed
from app.utils.security import mask_rpc_url

WS_PING_INTERVAL = 20
WS_PING_TIMEOUT = 20
WS_MAX_MESSAGE_SIZE = 10 * 1024 * 1024


def build_subscription_request(
    contract_address: str, topics: list[str] | None = None, request_id: int = 1
) -> dict[str, Any]:
    """
    Build the eth_subscribe JSON-RPC payload for contract logs.

    Args:
        contract_address: Contract to watch
        topics: Optional topic0 whitelist
        request_id: JSON-RPC id

    Returns:
        JSON-RPC request dict
    """
    log_filter: dict[str, Any] = {"address": contract_address}
    if topics:
        log_filter["topics"] = [topics]
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "eth_subscribe",
        "params": ["logs", log_filter],
    }


class LogSubscription:
    """Single websocket subscription to a contract's logs."""

    def __init__(
        self,
        ws_url: str,
        contract_address: str,
        topics: list[str] | None = None,
        subscribe_timeout: float = WS_SUBSCRIBE_TIMEOUT,
    ) -> None:
        self.ws_url = ws_url
        self.contract_address = contract_address.lower()
        self.topics = topics
        self.subscribe_timeout = subscribe_timeout
        self.subscription_id: str | None = None

    async def stream(self) -> AsyncIterator[RawLog]:
        """
        Connect, subscribe and yield logs until the connection breaks.

        A notification that cannot be parsed ends the stream, so the caller
        re-reads the range instead of moving past a lost log.

        Yields:
            RawLog for each notification

        Raises:
            SubscriptionFailed: Connect or eth_subscribe failed
            SubscriptionDropped: Live subscription lost or sent a malformed log
        """
        endpoint = mask_rpc_url(self.ws_url)
        subscribed = False
        try:
            async with websockets.connect(
                self.ws_url,
                ping_interval=WS_PING_INTERVAL,
                ping_timeout=WS_PING_TIMEOUT,
                max_size=WS_MAX_MESSAGE_SIZE,
            ) as ws:
                await ws.send(json.dumps(
                    build_subscription_request(self.contract_address, self.topics)
                ))
                response = json.loads(
                    await asyncio.wait_for(ws.recv(), timeout=self.subscribe_timeout)
                )
                if "error" in response:
                    raise SubscriptionFailed(
                        f"eth_subscribe rejected by {endpoint}: {response['error']}"
                    )
                self.subscription_id = response.get("result")
                subscribed = True
                logger.info(
                    f"[Subscription] Subscribed to logs on {endpoint} "
                    f"(id={self.subscription_id})"
                )

                async for message in ws:
                    log = self._parse_notification(message)
                    if log is not None:
                        yield log
        except SubscriptionDropped:
            raise
        except websockets.exceptions.ConnectionClosed as e:
            error = SubscriptionDropped if subscribed else SubscriptionFailed
            raise error(f"Connection to {endpoint} closed: {e}") from e
        except (
            OSError,
            TimeoutError,
            json.JSONDecodeError,
            websockets.exceptions.WebSocketException,
        ) as e:
            error = SubscriptionDropped if subscribed else SubscriptionFailed
            raise error(
                f"Subscription to {endpoint} failed: {type(e).__name__}: {e}"
            ) from e

        raise SubscriptionDropped(f"Connection to {endpoint} ended")

    def _parse_notification(self, message: str | bytes) -> RawLog | None:
        """
        Extract a log from an eth_subscription notification.

        Returns:
            RawLog, or None for messages that are not log notifications

        Raises:
            SubscriptionDropped: Unreadable message or malformed log
        """
        try:
            payload = json.loads(message)
        except json.JSONDecodeError as e:
            raise SubscriptionDropped(f"Invalid JSON notification: {e}") from e

        if not isinstance(payload, dict) or payload.get("method") != "eth_subscription":
            return None
        result = (payload.get("params") or {}).get("result")
        if not result:
            raise SubscriptionDropped("Log notification without a result")

        try:
            return RawLog.from_rpc(result)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[Subscription] Malformed log notification: {e}")
            raise SubscriptionDropped(f"Malformed log notification: {e}") from e

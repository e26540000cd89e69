"""WebSocket support for real-time EVM block and pending transaction updates."""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from whale_tracker.logging_config import get_logger

logger = get_logger(__name__)

NotificationCallback = Callable[[Any], Awaitable[None]]


class SubscriptionType(str, Enum):
    """Types of ``eth_subscribe`` subscriptions."""

    NEW_HEADS = "newHeads"
    PENDING_TRANSACTIONS = "newPendingTransactions"


class EvmSubscriptionClient:
    """Client for the ``eth_subscribe`` WebSocket API.

    The client keeps one connection open, subscribes to new block headers
    and, when a pending callback is given, to pending transaction hashes.
    Every notification is handed to its callback in a separate task so a
    slow handler never stalls the socket. When the connection drops the
    client waits ``reconnect_delay`` seconds, reconnects and subscribes again.
    """

    def __init__(
        self,
        ws_url: str,
        on_new_head: NotificationCallback,
        on_pending_transaction: Optional[NotificationCallback] = None,
        reconnect_delay: float = 3.0,
        chain: str = "ethereum",
    ):
        """Initialize the WebSocket client.

        Args:
            ws_url: WebSocket endpoint of the node
            on_new_head: Coroutine called with each new block header
            on_pending_transaction: Coroutine called with each pending tx hash
            reconnect_delay: Seconds to wait before reconnecting
            chain: Chain name used in log lines
        """
        self.ws_url = ws_url
        self.on_new_head = on_new_head
        self.on_pending_transaction = on_pending_transaction
        self.reconnect_delay = reconnect_delay
        self.chain = chain

        self.ws_connection = None
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.request_id = 0
        self.reconnects = 0

        self.subscriptions: Dict[str, SubscriptionType] = {}
        self._pending_requests: Dict[int, SubscriptionType] = {}
        self._callback_tasks: Set[asyncio.Task] = set()

    def _get_next_id(self) -> int:
        self.request_id += 1
        return self.request_id

    @property
    def connected(self) -> bool:
        return self.ws_connection is not None

    async def start(self):
        """Start the connect/listen loop in the background."""
        if self.task is not None and not self.task.done():
            return
        self.running = True
        self.task = asyncio.create_task(self._run())

    async def stop(self):
        """Stop listening and close the connection."""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        await self._close()
        for task in list(self._callback_tasks):
            task.cancel()

    async def _run(self):
        """Connect, subscribe and listen until stopped, reconnecting on failure."""
        while self.running:
            try:
                await self._connect()
                await self._listen()
            except asyncio.CancelledError:
                raise
            except (ConnectionClosed, InvalidHandshake, OSError) as e:
                logger.warning(f"{self.chain} WebSocket connection lost: {str(e)}")
            except Exception as e:
                logger.error(f"{self.chain} WebSocket error: {str(e)}")
            finally:
                await self._close()

            if self.running:
                self.reconnects += 1
                logger.info(f"Reconnecting {self.chain} WebSocket in {self.reconnect_delay}s")
                await asyncio.sleep(self.reconnect_delay)

    async def _connect(self):
        self.ws_connection = await websockets.connect(
            self.ws_url,
            max_size=None,
            ping_interval=20,
            ping_timeout=20
        )
        self.subscriptions.clear()
        self._pending_requests.clear()

        await self._subscribe(SubscriptionType.NEW_HEADS)
        if self.on_pending_transaction is not None:
            await self._subscribe(SubscriptionType.PENDING_TRANSACTIONS)
        logger.info(f"Connected to {self.chain} WebSocket")

    async def _close(self):
        if self.ws_connection is not None:
            try:
                await self.ws_connection.close()
            except Exception as e:
                logger.debug(f"Error closing {self.chain} WebSocket: {str(e)}")
            self.ws_connection = None

    async def _subscribe(self, subscription_type: SubscriptionType):
        request_id = self._get_next_id()
        self._pending_requests[request_id] = subscription_type
        await self.ws_connection.send(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "eth_subscribe",
            "params": [subscription_type.value],
        }))

    async def _listen(self):
        """Read messages until the connection closes."""
        while self.running and self.ws_connection is not None:
            message = await self.ws_connection.recv()
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                logger.debug(f"Ignoring undecodable {self.chain} WebSocket message")
                continue
            self.handle_message(data)

    def handle_message(self, data: Dict[str, Any]):
        """Route a decoded message to the matching subscription callback."""
        if data.get("method") == "eth_subscription":
            params = data.get("params") or {}
            subscription_type = self.subscriptions.get(params.get("subscription"))
            if subscription_type is None:
                return
            result = params.get("result")
            if subscription_type == SubscriptionType.NEW_HEADS:
                self._dispatch(self.on_new_head, result)
            elif self.on_pending_transaction is not None:
                self._dispatch(self.on_pending_transaction, result)
        elif "id" in data:
            subscription_type = self._pending_requests.pop(data["id"], None)
            if subscription_type is None:
                return
            if "error" in data:
                logger.error(f"{self.chain} subscription to {subscription_type.value} failed: {data['error']}")
            else:
                self.subscriptions[data.get("result")] = subscription_type

    def _dispatch(self, callback: NotificationCallback, payload: Any):
        task = asyncio.create_task(self._invoke(callback, payload))
        self._callback_tasks.add(task)
        task.add_done_callback(self._callback_tasks.discard)

    async def _invoke(self, callback: NotificationCallback, payload: Any):
        try:
            await callback(payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in {self.chain} notification callback: {str(e)}")

"""
Event Listener Utility for Tendermint RPC event subscriptions.

Provides a websocket JSON-RPC client that subscribes to chain event queries and
delivers each matching event to the handler registered for its query. Each
subscription gets its own worker task so a slow handler only delays its own
category.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from ..errors import SubscriptionError
from .event_attributes import Event

EventCallback = Callable[[Event], Awaitable[None]]


def _event_query(message: dict[str, Any]) -> str | None:
    """Return the query of an event notification, or None for anything else."""
    result = message.get("result")
    if not isinstance(result, dict):
        return None
    query = result.get("query")
    return query if isinstance(query, str) and query else None


class ConnectionState(Enum):
    """Connection state for event listener."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class Subscription:
    """A registered query with its handler and delivery queue."""
    query: str
    callback: EventCallback
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    worker: asyncio.Task | None = None


class TendermintEventListener:
    """
    Utility for listening to Tendermint events via websocket.

    Features:
    - JSON-RPC subscribe with acknowledgement per query
    - One worker task per subscription
    - Reconnection with exponential backoff, re-issuing every subscription
    """

    def __init__(
        self,
        websocket_url: str,
        max_retries: int = 5,
        base_delay: float = 1,
        max_delay: float = 60,
        subscribe_timeout: float = 10
    ) -> None:
        """
        Initialize the TendermintEventListener.

        Args:
            websocket_url: Tendermint RPC websocket endpoint, e.g. ws://host:26657/websocket
            max_retries: Maximum consecutive reconnect attempts
            base_delay: Initial reconnect delay in seconds
            max_delay: Upper bound of the reconnect delay in seconds
            subscribe_timeout: Seconds to wait for the node to acknowledge a subscription
        """
        self.websocket_url = websocket_url
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.subscribe_timeout = subscribe_timeout

        self.connection_state = ConnectionState.DISCONNECTED
        self.is_running = False

        self._ws: Any = None
        self._request_id = 0
        self.subscriptions: dict[str, Subscription] = {}

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def connect(self) -> None:
        """
        Open the websocket connection.

        Raises:
            ConnectionError: If the endpoint cannot be reached
        """
        self.connection_state = ConnectionState.CONNECTING
        self.logger.info(f"Connecting to websocket: {self.websocket_url}")
        try:
            self._ws = await websockets.connect(self.websocket_url)
        except (OSError, WebSocketException) as e:
            self.connection_state = ConnectionState.FAILED
            raise ConnectionError(f"Cannot connect to {self.websocket_url}: {e}") from e

        self.connection_state = ConnectionState.CONNECTED
        self.logger.info("Websocket connected successfully")

    async def subscribe(self, query: str, callback: EventCallback) -> None:
        """
        Subscribe to a query and deliver its events to a callback.

        Args:
            query: Tendermint event query, e.g. "message.action='volume_report'"
            callback: Async function called with the attribute table of each event

        Raises:
            SubscriptionError: If the node rejects the query or the connection fails
        """
        if self._ws is None:
            raise SubscriptionError(f"Cannot subscribe to {query}: not connected")
        if query in self.subscriptions:
            raise SubscriptionError(f"Already subscribed to {query}")

        await self._send_subscribe(query)

        subscription = Subscription(query=query, callback=callback)
        subscription.worker = asyncio.create_task(self._worker(subscription))
        self.subscriptions[query] = subscription
        self.logger.info(f"Subscribed to {query}")

    async def _send_subscribe(self, query: str) -> None:
        """Send a subscribe request and wait for its acknowledgement."""
        self._request_id += 1
        request_id = self._request_id
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "subscribe",
            "params": {"query": query},
        }

        try:
            await self._ws.send(json.dumps(request))
            await asyncio.wait_for(self._wait_for_ack(request_id, query), timeout=self.subscribe_timeout)
        except asyncio.TimeoutError as e:
            raise SubscriptionError(
                f"No reply to subscription {query} within {self.subscribe_timeout} seconds"
            ) from e
        except (OSError, WebSocketException) as e:
            raise SubscriptionError(f"Connection lost while subscribing to {query}: {e}") from e

    async def _wait_for_ack(self, request_id: int, query: str) -> None:
        while True:
            message = self._parse(await self._ws.recv())
            if message is None:
                continue
            if message.get("id") == request_id:
                if error := message.get("error"):
                    raise SubscriptionError(f"Subscription to {query} rejected: {error}")
                if not _event_query(message):
                    return
            # Events of earlier subscriptions can arrive before the reply
            self._route(message)

    def _parse(self, raw: str | bytes) -> dict[str, Any] | None:
        try:
            message = json.loads(raw)
        except ValueError:
            self.logger.warning(f"Ignoring malformed websocket frame: {raw!r:.200}")
            return None
        return message if isinstance(message, dict) else None

    def _route(self, message: dict[str, Any] | None) -> None:
        """Queue the events of a message for the subscription matching its query."""
        if message is None:
            return

        query = _event_query(message)
        if query is None:
            self.logger.debug(f"Ignoring message without query: {message!r:.200}")
            return

        events = message["result"].get("events") or {}
        if not isinstance(events, dict):
            self.logger.warning(f"Ignoring {query} event with malformed attributes: {events!r:.200}")
            return

        subscription = self.subscriptions.get(query)
        if subscription is None:
            self.logger.warning(f"Received event for unknown query {query}")
            return

        subscription.queue.put_nowait(events)

    async def _worker(self, subscription: Subscription) -> None:
        """Deliver queued events to the subscription callback, one at a time."""
        while True:
            events = await subscription.queue.get()
            try:
                await subscription.callback(events)
            except Exception as e:
                self.logger.error(f"Error processing event for {subscription.query}: {e}", exc_info=True)
            finally:
                subscription.queue.task_done()

    async def _reconnect(self) -> None:
        await self.connect()
        for query in self.subscriptions:
            await self._send_subscribe(query)
        self.logger.info(f"Re-subscribed to {len(self.subscriptions)} queries")

    async def listen(self) -> None:
        """
        Read events until stopped, reconnecting on connection loss.

        Raises:
            ConnectionError: If reconnecting fails max_retries times in a row
        """
        self.is_running = True
        retry_count = 0

        while self.is_running:
            try:
                if self._ws is None:
                    await self._reconnect()
                    retry_count = 0

                async for raw in self._ws:
                    self._route(self._parse(raw))

                if not self.is_running:
                    break
                raise ConnectionError("websocket closed by peer")

            except (OSError, WebSocketException, SubscriptionError) as e:
                if not self.is_running:
                    break

                await self._close_socket()
                retry_count += 1
                if retry_count > self.max_retries:
                    self.connection_state = ConnectionState.FAILED
                    self.logger.error("Max websocket retries reached")
                    raise ConnectionError(f"Websocket to {self.websocket_url} failed: {e}") from e

                delay = min(self.base_delay * (2 ** retry_count), self.max_delay)
                self.logger.warning(
                    f"Websocket connection lost (attempt {retry_count}/{self.max_retries}): {e}"
                )
                self.logger.info(f"Retrying in {delay} seconds...")
                self.connection_state = ConnectionState.RECONNECTING
                await asyncio.sleep(delay)

    async def stop(self) -> None:
        """Stop listening, cancel workers and close the connection."""
        self.logger.info("Stopping event listener...")
        self.is_running = False

        workers = [s.worker for s in self.subscriptions.values() if s.worker]
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        await self._close_socket()
        self.connection_state = ConnectionState.DISCONNECTED

    async def _close_socket(self) -> None:
        try:
            if self._ws is not None:
                await self._ws.close()
        except (OSError, WebSocketException) as e:
            self.logger.warning(f"Error closing websocket: {e}")
        finally:
            self._ws = None

    def get_status(self) -> dict[str, Any]:
        """
        Get current status of the listener.

        Returns:
            Dictionary with status information
        """
        return {
            "is_running": self.is_running,
            "connection_state": self.connection_state.value,
            "subscriptions": len(self.subscriptions),
            "pending_events": sum(s.queue.qsize() for s in self.subscriptions.values()),
            "websocket_url": self.websocket_url,
        }

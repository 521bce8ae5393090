"""
Stratos relay implementation.

This module contains the main relay service: it registers one chain
subscription per message action, dispatches delivered events to the event
processor and forwards the resulting commands to the SP node.
"""

import asyncio
import logging
from collections import Counter
from typing import Optional

from .config import RelayConfig
from .errors import EventError, ForwardError, SubscriptionError
from .event_processor import EventBinding, EventProcessor, HandlerKind
from .forwarder import SdsForwarder
from .utils.event_attributes import Event
from .utils.event_listener_utility import TendermintEventListener

logger = logging.getLogger(__name__)


class StratosRelay:
    """
    Main relay service that orchestrates chain subscriptions and forwarding.

    This class focuses on registration, dispatch and lifecycle management,
    delegating event interpretation to the EventProcessor and delivery to the
    SdsForwarder.
    """

    def __init__(
        self,
        config: RelayConfig,
        listener: Optional[TendermintEventListener] = None,
        forwarder: Optional[SdsForwarder] = None,
    ):
        """
        Initialize the Stratos relay.

        Args:
            config: Relay configuration
            listener: Subscription transport, built from config when omitted
            forwarder: SP node forwarder, built from config when omitted
        """
        self.config = config
        self.running = False

        self.event_processor = EventProcessor(config.chain.p2p_address_prefix)
        self.forwarder = forwarder or SdsForwarder(config.sds, config.monitoring)
        self.listener = listener or TendermintEventListener(
            websocket_url=config.chain.websocket_url,
            max_retries=config.monitoring.max_retries,
        )

        self.stats: Counter[str] = Counter()
        self.shutdown_event = asyncio.Event()

    @classmethod
    def from_env(cls) -> "StratosRelay":
        """
        Create a StratosRelay instance from environment variables.

        Raises:
            ValueError: If required environment variables are missing
        """
        config = RelayConfig.from_env()
        config.log_config()
        return cls(config)

    async def subscribe_to_chain_events(self) -> None:
        """
        Register every event binding with the subscription transport.

        Bindings are registered in order and registration stops at the first
        failure. Bindings registered before the failure stay active.

        Raises:
            SubscriptionError: If any binding cannot be registered
        """
        for binding in self.event_processor.bindings():
            try:
                await self.listener.subscribe(binding.query, self._make_callback(binding))
            except SubscriptionError:
                logger.error(f"Failed to subscribe to {binding.query}")
                raise
        logger.info(f"Subscribed to {len(self.listener.subscriptions)} chain event queries")

    def _make_callback(self, binding: EventBinding):
        async def callback(event: Event) -> None:
            await self.dispatch(binding, event)
        return callback

    async def dispatch(self, binding: EventBinding, event: Event) -> None:
        """
        Handle one delivered event and forward the resulting command.

        Every per-event failure ends here as a log line; nothing is raised.

        Args:
            binding: Binding the event was delivered for
            event: Event attribute table
        """
        self.stats["received"] += 1

        if binding.kind is HandlerKind.UNIMPLEMENTED or binding.handler is None:
            # No forwarding contract is defined for these categories
            logger.info(f"Unhandled {binding.action} event: {dict(event)}")
            self.stats["unimplemented"] += 1
            return

        try:
            command = binding.handler(event)
        except EventError as e:
            logger.error(f"Dropping {binding.action} event: {e}")
            self.stats["dropped"] += 1
            return

        if command is None:
            self.stats["skipped"] += 1
            return

        try:
            await self.forwarder.post(command.PATH, command)
        except ForwardError as e:
            logger.error(f"Failed to forward {binding.action} event: {e}")
            self.stats["forward_failed"] += 1
            return

        self.stats["forwarded"] += 1

    def get_stats(self) -> dict:
        """
        Get current relay statistics.

        Returns:
            Dictionary with event counters
        """
        return {
            key: self.stats[key]
            for key in ("received", "forwarded", "dropped", "skipped", "unimplemented", "forward_failed")
        }

    async def _periodic_status_logger(self) -> None:
        """Log status periodically while running."""
        while self.running:
            await asyncio.sleep(self.config.monitoring.status_log_interval)
            stats = self.get_stats()
            if stats['received'] > 0:
                logger.info(
                    f"Status: {stats['received']} received, "
                    f"{stats['forwarded']} forwarded, "
                    f"{stats['dropped']} dropped, "
                    f"{stats['forward_failed']} failed forwards"
                )

    async def _check_task_health(self, tasks: dict[str, asyncio.Task]) -> bool:
        """Check if any critical task has failed."""
        for name, task in tasks.items():
            if task.done() and name != "status":
                try:
                    await task
                except Exception as e:
                    logger.error(f"{name} task failed: {e}", exc_info=True)
                return False
        return True

    async def _cleanup_tasks(self, tasks: dict[str, asyncio.Task]) -> None:
        """Clean up all tasks and the listener."""
        await self.listener.stop()

        for task in tasks.values():
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def run(self) -> None:
        """
        Main event loop for the relay service.

        Raises:
            ConnectionError: If the chain node cannot be reached
            SubscriptionError: If an event binding cannot be registered
        """
        self.running = True
        logger.info("Stratos Relay starting...")

        tasks: dict[str, asyncio.Task] = {}
        try:
            await self.listener.connect()
            await self.subscribe_to_chain_events()

            tasks = {
                "listener": asyncio.create_task(self.listener.listen()),
                "status": asyncio.create_task(self._periodic_status_logger()),
            }

            logger.info("Event monitoring started, waiting for events...")

            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=1.0)
                    break
                except asyncio.TimeoutError:
                    pass

                if not await self._check_task_health(tasks):
                    raise RuntimeError("Critical task failure, shutting down")

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.running = False
            await self._cleanup_tasks(tasks)
            logger.info("Stratos Relay stopped")

    def stop(self) -> None:
        """Stop the relay service."""
        self.running = False
        self.shutdown_event.set()

"""
Order listener worker.
Polls the store for the vendor's processing orders, drops anything already dispatched or not
owned by the vendor, and hands each new order to a caller-supplied handler (printing, UI).
"""

import asyncio
import contextlib
import inspect
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

from order_agent.config import settings
from order_agent.errors import ConfigurationError, FetchError
from order_agent.models.agent import AgentConfig
from order_agent.services.notification_service import NotificationService
from order_agent.services.order_fetcher import VendorOrderFetcher
from order_agent.services.processed_orders import ProcessedOrderLedger
from order_agent.services.vendor_ownership import belongs_to_vendor, filter_by_vendor
from order_agent.services.vendor_resolver import resolve_vendor_id
from order_agent.services.woocommerce_client import WooCommerceAPIClient

logger = structlog.get_logger()

OrderHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class OrderListener:
    """
    Two states: stopped and running. While running, exactly one polling task exists; it sleeps
    for the check interval, runs a cycle to completion, and repeats, so cycles never overlap.
    start() while running stops the previous task first. stop() cancels the task before it
    returns, so no further cycle fires afterwards.
    Overlapping start() and stop() calls run one after the other.
    """

    def __init__(
        self,
        ledger: Optional[ProcessedOrderLedger] = None,
        *,
        client_factory: Callable[[AgentConfig], WooCommerceAPIClient] = WooCommerceAPIClient.from_config,
        fetcher_factory: Callable[[WooCommerceAPIClient], VendorOrderFetcher] = VendorOrderFetcher,
        vendor_resolver: Callable[..., Awaitable[str]] = resolve_vendor_id,
        notifier: Optional[NotificationService] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        default_interval_seconds: Optional[float] = None,
        min_interval_seconds: Optional[float] = None,
    ):
        self.ledger = ledger if ledger is not None else ProcessedOrderLedger()
        self._client_factory = client_factory
        self._fetcher_factory = fetcher_factory
        self._vendor_resolver = vendor_resolver
        self._notifier = notifier
        self._sleep = sleep
        self.default_interval_seconds = (
            default_interval_seconds
            if default_interval_seconds is not None
            else settings.default_check_interval_seconds
        )
        self.min_interval_seconds = (
            min_interval_seconds if min_interval_seconds is not None else settings.min_check_interval_seconds
        )

        self.running = False
        self.config: Optional[AgentConfig] = None
        self.vendor_id = ""
        self.check_interval_seconds = 0.0
        self.last_check_at: Optional[datetime] = None
        self.last_dispatch_count = 0

        self._client: Optional[WooCommerceAPIClient] = None
        self._fetcher: Optional[VendorOrderFetcher] = None
        self._on_order: Optional[OrderHandler] = None
        self._task: Optional[asyncio.Task] = None
        # Serializes start/stop; _lock_owner lets a handler stop the listener during start()'s first cycle
        self._lock = asyncio.Lock()
        self._lock_owner: Optional[asyncio.Task] = None

    async def start(self, config: AgentConfig, on_order: OrderHandler) -> AgentConfig:
        """
        Start polling for the configured vendor.

        Args:
            config: Agent config; a missing vendor id is detected from the credentials once
            on_order: Called with each new, vendor-verified order (sync or async)

        Returns:
            The config actually used (with the detected vendor id filled in)

        Raises:
            ConfigurationError: If credentials are missing, or no vendor id is configured and
                none could be detected. The listener stays stopped.
        """
        async with self._lock:
            self._lock_owner = asyncio.current_task()
            try:
                return await self._start(config, on_order)
            finally:
                self._lock_owner = None

    async def _start(self, config: AgentConfig, on_order: OrderHandler) -> AgentConfig:
        if self.running or self._task is not None:
            logger.info("Order listener already running, restarting")
            await self._stop()

        config.require_credentials()
        client = self._client_factory(config)

        if not config.vendor_id:
            logger.info("Vendor id not configured, attempting detection")
            vendor_id = await self._vendor_resolver(config, client)
            if not vendor_id:
                await client.close()
                raise ConfigurationError("Vendor ID not configured and could not be detected automatically")
            logger.info("Vendor id detected", vendor_id=vendor_id)
            config = config.model_copy(update={"vendor_id": vendor_id})

        self.config = config
        self.vendor_id = config.vendor_id
        self._client = client
        self._fetcher = self._fetcher_factory(client)
        self._on_order = on_order

        self.ledger.load()

        self.check_interval_seconds = config.effective_check_interval(
            self.default_interval_seconds, self.min_interval_seconds
        )
        if 0 < config.check_interval < self.check_interval_seconds:
            logger.warning(
                "Check interval below minimum, clamped",
                requested_seconds=config.check_interval,
                interval_seconds=self.check_interval_seconds,
            )

        logger.info(
            "Order listener started",
            vendor_id=self.vendor_id,
            interval_seconds=self.check_interval_seconds,
        )

        # First check right away, then on the timer
        await self.check_for_new_orders()
        if self._client is None:
            logger.info("Order listener stopped during its first check")
            return config
        self._task = asyncio.create_task(self._poll_loop(), name="order-listener")
        self.running = True
        return config

    async def stop(self, clear_ledger: bool = False) -> bool:
        """
        Stop polling and persist the ledger. Safe to call when already stopped.

        Args:
            clear_ledger: Also forget every processed order (persisted empty)

        Returns:
            True
        """
        if self._lock_owner is not None and self._lock_owner is asyncio.current_task():
            return await self._stop(clear_ledger)
        async with self._lock:
            return await self._stop(clear_ledger)

    async def _stop(self, clear_ledger: bool = False) -> bool:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

        if not self.running and task is None and self._client is None:
            logger.info("Order listener already stopped")
            if clear_ledger:
                self.ledger.clear()
            return True

        self.running = False

        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if clear_ledger:
            self.ledger.clear()
        else:
            logger.info("Saving processed orders", count=len(self.ledger))
            self.ledger.save()

        if self._client is not None:
            await self._client.close()
            self._client = None
        self._fetcher = None

        logger.info("Order listener stopped")
        return True

    async def _poll_loop(self) -> None:
        while True:
            await self._sleep(self.check_interval_seconds)
            await self.check_for_new_orders()

    async def check_for_new_orders(self) -> int:
        """
        Run one polling cycle. Never raises (except cancellation): fetch failures end the cycle
        and the next scheduled one proceeds normally.

        Returns:
            Number of orders handed to the handler
        """
        self.last_check_at = datetime.now(timezone.utc)
        self.last_dispatch_count = 0

        if self._fetcher is None or not self.vendor_id:
            logger.error("Vendor id not configured, cannot check for orders")
            return 0

        vendor_id = self.vendor_id
        logger.info("Checking for new orders", vendor_id=vendor_id)

        try:
            orders = await self._fetcher.fetch_vendor_orders(vendor_id)
            # Strategy results are not trusted until they pass the ownership filter
            verified = filter_by_vendor(orders, vendor_id) if orders else []
        except FetchError as e:
            logger.error("Failed to fetch vendor orders", vendor_id=vendor_id, failures=e.failures)
            await self._notify_fetch_failure(e)
            return 0
        except Exception as e:
            logger.error("Error checking for new orders", vendor_id=vendor_id, error=str(e), exc_info=True)
            await self._notify_fetch_failure(e)
            return 0

        new_orders = [order for order in verified if not self.ledger.has(order.get("id"))]
        if not new_orders:
            logger.info("No new orders", vendor_id=vendor_id, verified_count=len(verified))
            return 0

        logger.info("New orders found", vendor_id=vendor_id, count=len(new_orders))
        dispatched = await self._dispatch(new_orders, vendor_id)

        if dispatched:
            self.ledger.save()
        self.last_dispatch_count = dispatched
        return dispatched

    async def _dispatch(self, orders: list, vendor_id: str) -> int:
        dispatched = 0
        for order in orders:
            order_id = order.get("id")
            if order_id is None or order_id == "":
                logger.warning("Skipping order without id", vendor_id=vendor_id)
                continue
            # The same order can appear twice in one response
            if self.ledger.has(order_id):
                continue

            if not belongs_to_vendor(order, vendor_id):
                logger.warning(
                    "Blocked order of another vendor",
                    order_id=order_id,
                    vendor_id=vendor_id,
                    security=True,
                )
                continue

            # Marked before the handler runs: a failed print is not retried automatically
            self.ledger.add(order_id)
            dispatched += 1
            logger.info("Dispatching order", order_id=order_id, vendor_id=vendor_id)

            try:
                result = self._on_order(order)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Order dispatch failed",
                    order_id=order_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return dispatched

    async def _notify_fetch_failure(self, error: Exception) -> None:
        if self._notifier is None:
            return
        await self._notifier.notify(
            "error",
            f"Could not fetch orders from the store: {error}",
            alert_type="fetch_failure",
        )

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "vendor_id": self.vendor_id or None,
            "check_interval_seconds": self.check_interval_seconds or None,
            "processed_count": len(self.ledger),
            "last_check_at": self.last_check_at.isoformat() if self.last_check_at else None,
            "last_dispatch_count": self.last_dispatch_count,
        }

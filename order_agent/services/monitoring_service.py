"""
Monitoring service.
Owns the single order listener of the process and the operations around it: start/stop,
config changes that require a restart, and the resets of processed orders and history.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from order_agent.errors import DispatchError, OrderAgentError
from order_agent.models.agent import PASSWORD_MASK, AgentConfig
from order_agent.printing.base import Printer
from order_agent.printing.cups_printer import CupsPrinter
from order_agent.services.config_store import ConfigStore
from order_agent.services.notification_service import NotificationService, get_notification_service
from order_agent.services.order_fetcher import VendorOrderFetcher
from order_agent.services.order_history import OrderHistory
from order_agent.services.print_dispatcher import PrintDispatcher
from order_agent.services.processed_orders import ProcessedOrderLedger
from order_agent.services.vendor_resolver import resolve_vendor_id
from order_agent.services.woocommerce_client import WooCommerceAPIClient
from order_agent.workers.order_listener import OrderListener

logger = structlog.get_logger()

# Changing any of these while monitoring restarts the listener
RESTART_FIELDS = ("api_url", "username", "password", "vendor_id", "check_interval")


def default_printer_factory(config: AgentConfig) -> Printer:
    return CupsPrinter(width=config.print_width)


class MonitoringService:
    """Application-level controller for order monitoring."""

    def __init__(
        self,
        config_store: Optional[ConfigStore] = None,
        listener: Optional[OrderListener] = None,
        history: Optional[OrderHistory] = None,
        notifier: Optional[NotificationService] = None,
        printer_factory: Callable[[AgentConfig], Printer] = default_printer_factory,
        client_factory: Callable[[AgentConfig], WooCommerceAPIClient] = WooCommerceAPIClient.from_config,
    ):
        self.config_store = config_store or ConfigStore()
        self.history = history or OrderHistory()
        self.notifier = notifier or get_notification_service()
        self.listener = listener or OrderListener(ProcessedOrderLedger(), notifier=self.notifier)
        self.printer_factory = printer_factory
        self.client_factory = client_factory
        # Serializes start/stop/config changes coming from concurrent API requests
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self.listener.running

    def get_config(self) -> AgentConfig:
        return self.config_store.load()

    async def start_monitoring(self) -> bool:
        """
        Start the listener with the stored config.

        Returns:
            True if monitoring is now running; refusals are reported as notifications
        """
        async with self._lock:
            return await self._start()

    async def stop_monitoring(self) -> bool:
        async with self._lock:
            return await self._stop()

    async def restart_monitoring(self) -> bool:
        async with self._lock:
            await self._stop()
            return await self._start()

    async def _start(self) -> bool:
        config = self.config_store.load()

        if not config.has_credentials() or not config.printer_id:
            logger.error("Cannot start monitoring with incomplete configuration")
            await self.notifier.notify("error", "Incomplete configuration. Check the API and printer settings.")
            return False

        if not config.vendor_id:
            logger.error("Cannot start monitoring without a vendor id", security=True)
            await self.notifier.notify("error", "Vendor ID not configured. Set the vendor ID before starting.")
            return False

        dispatcher = PrintDispatcher(
            printer=self.printer_factory(config),
            printer_name=config.printer_id,
            history=self.history,
            notifier=self.notifier,
        )
        try:
            await self.listener.start(config, dispatcher)
        except OrderAgentError as e:
            logger.error("Failed to start monitoring", error=str(e))
            await self.notifier.notify("error", f"Failed to start monitoring: {e}")
            return False

        logger.info("Order monitoring started", vendor_id=config.vendor_id, printer=config.printer_id)
        await self.notifier.notify("success", "Order monitoring started")
        return True

    async def _stop(self, clear_ledger: bool = False) -> bool:
        was_running = self.listener.running
        await self.listener.stop(clear_ledger=clear_ledger)
        if was_running:
            logger.info("Order monitoring stopped")
            await self.notifier.notify("info", "Order monitoring stopped")
        return True

    async def save_config(self, new_config: Union[AgentConfig, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Persist a new config, detecting a missing vendor id and restarting monitoring when a
        setting it depends on changed.

        Returns:
            {success, detected_vendor_id, restarted}

        Raises:
            PersistenceError: If the config file cannot be written
        """
        async with self._lock:
            config = (
                new_config
                if isinstance(new_config, AgentConfig)
                else AgentConfig.model_validate(new_config or {})
            )
            old_config = self.config_store.load()

            # The UI shows the mask; sending it back means "unchanged"
            if config.password == PASSWORD_MASK:
                config = config.model_copy(update={"password": old_config.password})

            running = self.listener.running
            needs_restart = running and any(
                getattr(old_config, field) != getattr(config, field) for field in RESTART_FIELDS
            )

            detected_vendor_id = None
            if not config.vendor_id and config.has_credentials():
                logger.info("Vendor id not set, attempting detection before saving")
                async with self.client_factory(config) as client:
                    vendor_id = await resolve_vendor_id(config, client)
                if vendor_id:
                    detected_vendor_id = vendor_id
                    config = config.model_copy(update={"vendor_id": vendor_id})
                    needs_restart = running and (needs_restart or old_config.vendor_id != vendor_id)
                else:
                    logger.warning("Could not detect vendor id, saving without it")

            self.config_store.save(config)

            if needs_restart:
                logger.info("Monitoring settings changed, restarting")
                await self.notifier.notify("info", "Restarting monitoring with the new settings...")
                await self._stop()
                if await self._start():
                    await self.notifier.notify("success", "Monitoring restarted with the new settings")
                else:
                    await self.notifier.notify("error", "Failed to restart monitoring. Please start it manually.")

            return {"success": True, "detected_vendor_id": detected_vendor_id, "restarted": needs_restart}

    async def clear_processed_orders(self) -> Dict[str, Any]:
        """Forget every processed order, restarting monitoring around the reset if it was running."""
        async with self._lock:
            was_running = self.listener.running
            if was_running:
                await self.notifier.notify("info", "Stopping monitoring to clear processed orders...")
            await self._stop(clear_ledger=True)

            restarted = False
            if was_running:
                restarted = await self._start()
            return {"success": True, "restarted": was_running and restarted}

    async def clear_order_history(self) -> Dict[str, Any]:
        async with self._lock:
            was_running = self.listener.running
            if was_running:
                await self._stop()

            removed = self.history.clean_order_history(0)

            restarted = False
            if was_running:
                restarted = await self._start()
            return {"success": True, "removed": removed, "restarted": was_running and restarted}

    def status(self) -> Dict[str, Any]:
        return self.listener.status()

    async def test_print(self, order: Dict[str, Any], printer_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Print an arbitrary order (the UI sends a sample) without touching the ledger or history.

        Raises:
            DispatchError: If the print failed
        """
        config = self.config_store.load()
        printer_name = printer_name or config.printer_id
        order_id = order.get("id")
        try:
            await self.printer_factory(config).print_order(order, printer_name)
        except Exception as e:
            logger.error("Test print failed", order_id=order_id, printer=printer_name, error=str(e))
            await self.notifier.notify(
                "error",
                f"Failed to print order #{order_id}: {e}",
                order_id=order_id,
                print_status="failed",
                alert_type="test_print",
            )
            raise DispatchError(order_id, str(e)) from e

        logger.info("Test print sent", order_id=order_id, printer=printer_name)
        await self.notifier.notify(
            "success", f"Order #{order_id} printed", order_id=order_id, print_status="success"
        )
        return {"success": True, "order_id": order_id, "printer": printer_name}

    async def list_printers(self) -> List[Dict[str, Any]]:
        return await self.printer_factory(self.config_store.load()).list_printers()

    async def get_order_details(self, order_id: Union[int, str]) -> Dict[str, Any]:
        """
        Fetch one order for the configured vendor.

        Raises:
            ConfigurationError: If credentials or vendor id are missing
            OwnershipViolation: If the order belongs to another vendor
            WooCommerceAPIError: If the order cannot be fetched
        """
        config = self.config_store.load()
        config.require_credentials()
        vendor_id = config.require_vendor_id()
        async with self.client_factory(config) as client:
            return await VendorOrderFetcher(client).get_order_details(order_id, vendor_id)

    async def shutdown(self) -> None:
        async with self._lock:
            await self.listener.stop()


# Global instance
_monitoring_service: Optional[MonitoringService] = None


def get_monitoring_service() -> MonitoringService:
    """Get or create the global monitoring service."""
    global _monitoring_service
    if _monitoring_service is None:
        _monitoring_service = MonitoringService()
    return _monitoring_service

"""
Order handler that prints each new order, archives it and tells the operator.
"""

from typing import Any, Dict

import structlog

from order_agent.errors import DispatchError
from order_agent.printing.base import Printer
from order_agent.services.notification_service import NotificationService
from order_agent.services.order_history import PRINT_STATUS_FAILED, PRINT_STATUS_SUCCESS, OrderHistory

logger = structlog.get_logger()


class PrintDispatcher:
    """Callable passed to OrderListener.start as the on_order handler."""

    def __init__(
        self,
        printer: Printer,
        printer_name: str,
        history: OrderHistory,
        notifier: NotificationService,
    ):
        self.printer = printer
        self.printer_name = printer_name
        self.history = history
        self.notifier = notifier

    async def __call__(self, order: Dict[str, Any]) -> None:
        await self.dispatch(order)

    async def dispatch(self, order: Dict[str, Any]) -> None:
        """
        Print an order and archive the outcome.

        Raises:
            DispatchError: If printing failed (the order is archived as failed first)
        """
        order_id = order.get("id")
        logger.info("New order received", order_id=order_id, printer=self.printer_name)
        await self.notifier.notify("info", f"New order #{order_id} received", order_id=order_id)

        try:
            await self.printer.print_order(order, self.printer_name)
        except Exception as e:
            logger.error("Failed to print order", order_id=order_id, error=str(e), error_type=type(e).__name__)
            self.history.save_order_log(order, PRINT_STATUS_FAILED)
            await self.notifier.notify(
                "error",
                f"Failed to print order #{order_id}: {e}",
                order_id=order_id,
                print_status=PRINT_STATUS_FAILED,
                alert_type="print_failure",
            )
            raise DispatchError(order_id, str(e)) from e

        logger.info("Order printed", order_id=order_id)
        self.history.save_order_log(order, PRINT_STATUS_SUCCESS)
        await self.notifier.notify(
            "success",
            f"Order #{order_id} printed",
            order_id=order_id,
            print_status=PRINT_STATUS_SUCCESS,
        )

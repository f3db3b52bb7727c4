"""
Single-pass order check.
Runs one fetch-and-dispatch cycle for the stored config (printing new orders) and exits.
Useful from cron or to verify a setup without leaving the listener running.
"""

import asyncio
import sys

import structlog

from order_agent.errors import ConfigurationError
from order_agent.services.config_store import ConfigStore
from order_agent.services.monitoring_service import default_printer_factory
from order_agent.services.notification_service import get_notification_service
from order_agent.services.order_history import OrderHistory
from order_agent.services.print_dispatcher import PrintDispatcher
from order_agent.services.processed_orders import ProcessedOrderLedger
from order_agent.utils.logger import configure_logging
from order_agent.workers.order_listener import OrderListener

configure_logging()
logger = structlog.get_logger()


async def main() -> None:
    config = ConfigStore().load()
    notifier = get_notification_service()
    listener = OrderListener(ProcessedOrderLedger(), notifier=notifier)
    dispatcher = PrintDispatcher(
        printer=default_printer_factory(config),
        printer_name=config.printer_id,
        history=OrderHistory(),
        notifier=notifier,
    )

    try:
        logger.info("Single order check: starting")
        # start() runs the first cycle immediately; stop() right after cancels the timer
        await listener.start(config, dispatcher)
        logger.info("Single order check: done", dispatched=listener.last_dispatch_count)
    except ConfigurationError as e:
        logger.error("Single order check failed", error=str(e))
        sys.exit(1)
    finally:
        await listener.stop()


if __name__ == "__main__":
    asyncio.run(main())

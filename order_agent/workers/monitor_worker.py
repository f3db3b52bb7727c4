"""
Headless monitoring worker.
Runs the order listener with the print dispatcher and no HTTP surface, until interrupted.
"""

import asyncio

import structlog

from order_agent.config import settings
from order_agent.services.monitoring_service import MonitoringService

logger = structlog.get_logger()


async def run_worker(service: MonitoringService | None = None, stop_event: asyncio.Event | None = None) -> int:
    """
    Start monitoring with the stored config and keep it running.

    Returns:
        Process exit code: 0 after a clean stop, 1 if monitoring could not start
    """
    service = service or MonitoringService()
    stop_event = stop_event or asyncio.Event()

    service.history.clean_order_history(settings.order_history_retention_days)

    if not await service.start_monitoring():
        logger.error("Monitoring did not start, check the configuration and notifications")
        return 1

    logger.info("Monitoring worker running", **service.status())
    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Received shutdown signal")
        raise
    finally:
        await service.shutdown()
        logger.info("Monitoring worker stopped")
    return 0

"""
API router for starting, stopping and inspecting order monitoring.
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends

from order_agent.services.monitoring_service import MonitoringService, get_monitoring_service

logger = structlog.get_logger()

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])


@router.get("")
async def get_monitoring_status(
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """Current listener state: running flag, vendor, interval, processed count, last check."""
    return service.status()


@router.post("/start")
async def start_monitoring(service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    """
    Start monitoring with the stored config.
    Refusals (incomplete config, no vendor id) come back as success=false; the reason is in
    the notification feed.
    """
    started = await service.start_monitoring()
    return {"success": started, **service.status()}


@router.post("/stop")
async def stop_monitoring(service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    stopped = await service.stop_monitoring()
    return {"success": stopped, **service.status()}

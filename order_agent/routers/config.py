"""
API router for the agent configuration, the connection test and the vendor list.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Body, Depends

from order_agent.models.agent import PASSWORD_MASK, AgentConfig
from order_agent.services import store_diagnostics
from order_agent.services.monitoring_service import MonitoringService, get_monitoring_service

logger = structlog.get_logger()

router = APIRouter(prefix="/api/config", tags=["config"])
vendors_router = APIRouter(prefix="/api/vendors", tags=["vendors"])


@router.get("")
async def get_config(service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    """Stored config with the password masked."""
    return service.get_config().masked()


@router.put("")
async def save_config(
    config: Dict[str, Any] = Body(..., description="Agent config; unknown keys are ignored"),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """
    Save the config. A missing vendor id is detected from the credentials, and monitoring is
    restarted if it was running and a setting it depends on changed.
    """
    result = await service.save_config(config)
    logger.info("Config updated via API", restarted=result["restarted"])
    return result


@router.post("/test-connection")
async def test_connection(
    config: Optional[Dict[str, Any]] = Body(None, description="Config to test; the stored one if omitted"),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """Try the credentials and report which retrieval strategy finds the vendor's orders."""
    stored = service.get_config()
    if config is None:
        candidate = stored
    else:
        candidate = AgentConfig.model_validate(config)
        if candidate.password == PASSWORD_MASK:
            candidate = candidate.model_copy(update={"password": stored.password})
    return await store_diagnostics.test_connection(candidate)


@vendors_router.get("")
async def list_vendors(service: MonitoringService = Depends(get_monitoring_service)) -> List[Dict[str, Any]]:
    """Dokan vendor stores visible to the configured credentials."""
    return await store_diagnostics.list_vendors(service.get_config())

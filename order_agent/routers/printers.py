"""
API router for printers and test prints.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from order_agent.services.monitoring_service import MonitoringService, get_monitoring_service

router = APIRouter(prefix="/api/printers", tags=["printers"])


class TestPrintRequest(BaseModel):
    """Request model for a test print."""

    order: Dict[str, Any] = Field(..., description="Order to print (usually a sample)")
    printer_name: Optional[str] = Field(None, description="Printer to use; the configured one if omitted")


@router.get("")
async def list_printers(service: MonitoringService = Depends(get_monitoring_service)) -> List[Dict[str, Any]]:
    return await service.list_printers()


@router.post("/test")
async def test_print(
    request: TestPrintRequest,
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    return await service.test_print(request.order, request.printer_name)

"""
API router for order history, the processed-order reset and single-order lookup.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from order_agent.services.monitoring_service import MonitoringService, get_monitoring_service

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("/history")
async def get_order_history(
    limit: Optional[int] = Query(None, ge=1, le=500),
    service: MonitoringService = Depends(get_monitoring_service),
) -> List[Dict[str, Any]]:
    """Archived orders, most recent first."""
    return service.history.load_order_history(limit)


@router.delete("/history")
async def clear_order_history(service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    return await service.clear_order_history()


@router.delete("/processed")
async def clear_processed_orders(service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    """Forget every processed order so current processing orders are printed again."""
    return await service.clear_processed_orders()


@router.get("/{order_id}")
async def get_order(order_id: str, service: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    """One order of the configured vendor; other vendors' orders are refused with 403."""
    return await service.get_order_details(order_id)

"""
API router for the operator notification feed.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from order_agent.models.agent import Notification
from order_agent.services.notification_service import NotificationService, get_notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[Notification])
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Maximum notifications to return"),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Most recent notifications first."""
    return notifier.recent(limit)

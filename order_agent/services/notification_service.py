"""
Operator notifications.
Keeps a bounded in-memory feed (served by the control API) and pushes error alerts to Slack
via an Incoming Webhook when enabled.
"""

from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

import httpx
import structlog

from order_agent.config import settings
from order_agent.models.agent import Notification

logger = structlog.get_logger()

MAX_FEED_SIZE = 100


class NotificationService:
    """Records operator notifications and forwards errors to Slack."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        max_size: int = MAX_FEED_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        if enabled is None:
            enabled = str(settings.slack_alerts_enabled).lower() == "true"
        self.slack_enabled = enabled
        self._transport = transport
        self._feed: Deque[Notification] = deque(maxlen=max_size)

        # {alert_key: last_alert_time}
        self._rate_limit_cache: Dict[str, datetime] = {}
        self._rate_limit_window = timedelta(minutes=5)

    def _should_send_alert(self, alert_key: str) -> bool:
        now = datetime.now(timezone.utc)
        last_alert = self._rate_limit_cache.get(alert_key, datetime.min.replace(tzinfo=timezone.utc))
        if now - last_alert >= self._rate_limit_window:
            self._rate_limit_cache[alert_key] = now
            return True

        logger.debug("Slack alert rate limited", alert_key=alert_key, last_alert=last_alert.isoformat())
        return False

    def _format_alert(self, message: str, alert_type: str, order_id: Optional[str]) -> Dict[str, Any]:
        lines = [
            "🖨️ *Order Print Agent Error*",
            f"• Type: `{alert_type}`",
        ]
        if order_id:
            lines.append(f"• Order: `#{order_id}`")
        lines.append(f"• Error: {message}")
        lines.append(f"• Time: `{datetime.now(timezone.utc).isoformat()}`")
        return {"text": "\n".join(lines), "mrkdwn": True}

    async def notify(
        self,
        type: str,
        message: str,
        order_id: Optional[Any] = None,
        print_status: Optional[str] = None,
        alert_type: Optional[str] = None,
    ) -> Notification:
        """
        Record a notification; error notifications are also sent to Slack.

        Args:
            type: info, success, warning or error
            message: Text shown to the operator
            order_id: Order the notification is about, if any
            print_status: success/failed for print notifications
            alert_type: Rate-limit key for Slack alerts (defaults to "error")

        Returns:
            The recorded notification
        """
        notification = Notification(
            type=type,
            message=message,
            order_id=str(order_id) if order_id is not None else None,
            print_status=print_status,
        )
        self._feed.append(notification)
        logger.info(
            "Notification recorded",
            notification_type=type,
            message=message,
            order_id=notification.order_id,
        )

        if type == "error":
            await self.send_error_alert(message, alert_type=alert_type or "error", order_id=notification.order_id)
        return notification

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        """Newest first."""
        items = list(reversed(self._feed))
        return items[:limit] if limit else items

    def clear(self) -> None:
        self._feed.clear()

    async def send_error_alert(self, message: str, alert_type: str = "error", order_id: Optional[str] = None) -> bool:
        """
        Send an error alert to Slack.

        Returns:
            True if the alert was delivered
        """
        if not self.slack_enabled or not self.webhook_url:
            logger.debug("Slack alerts disabled or webhook not configured, skipping")
            return False

        alert_key = f"{alert_type}:{order_id}" if order_id else alert_type
        if not self._should_send_alert(alert_key):
            return False

        payload = self._format_alert(message, alert_type, order_id)
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.error("Timeout sending Slack alert", alert_type=alert_type)
            return False
        except httpx.HTTPStatusError as e:
            logger.error(
                "Failed to send Slack alert",
                alert_type=alert_type,
                status_code=e.response.status_code,
                response_text=e.response.text,
            )
            return False
        except httpx.HTTPError as e:
            logger.error("Error sending Slack alert", alert_type=alert_type, error=str(e))
            return False

        logger.info("Slack error alert sent", alert_type=alert_type, order_id=order_id)
        return True


# Global instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create the global notification service."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service

"""
Local order history.
One JSON file per dispatched order, named YYYY-MM-DD_order_<id>.json, holding the order as
received plus printed_at and print_status.
"""

import json
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytz
import structlog

from order_agent.config import settings

logger = structlog.get_logger()

PRINT_STATUS_SUCCESS = "success"
PRINT_STATUS_FAILED = "failed"


class OrderHistory:
    """Rolling archive of dispatched orders under settings.order_history_dir."""

    def __init__(self, directory: Optional[Path] = None, timezone: Optional[str] = None):
        self.directory = Path(directory) if directory is not None else Path(settings.order_history_dir)
        self.timezone = pytz.timezone(timezone or settings.timezone)

    def _now(self) -> datetime:
        return datetime.now(self.timezone)

    @staticmethod
    def _file_date(file_name: str) -> date:
        return datetime.strptime(file_name.split("_", 1)[0], "%Y-%m-%d").date()

    def _files(self) -> List[Path]:
        if not self.directory.exists():
            return []
        return [path for path in self.directory.iterdir() if path.is_file() and path.suffix == ".json"]

    def save_order_log(self, order: Dict[str, Any], print_status: str = PRINT_STATUS_SUCCESS) -> bool:
        """
        Archive an order with its print outcome.

        Returns:
            True if written; failures are logged
        """
        order_id = order.get("id")
        now = self._now()
        file_path = self.directory / f"{now.strftime('%Y-%m-%d')}_order_{order_id}.json"
        record = {**order, "printed_at": now.isoformat(), "print_status": print_status}

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            file_path.write_text(json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError) as e:
            logger.error("Failed to save order log", order_id=order_id, error=str(e))
            return False

        logger.info("Order log saved", order_id=order_id, print_status=print_status, path=str(file_path))
        return True

    def load_order_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Most recent archived orders first (by file name). Unreadable files are skipped."""
        limit = limit if limit is not None else settings.order_history_load_limit
        files = sorted(self._files(), key=lambda path: path.name, reverse=True)[:limit]

        orders = []
        for path in files:
            try:
                orders.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.error("Failed to read order log", file=path.name, error=str(e))

        logger.info("Order history loaded", count=len(orders))
        return orders

    def clean_order_history(self, days: Optional[int] = None) -> int:
        """
        Remove archived orders older than `days` days; 0 removes everything.

        Returns:
            Number of files removed
        """
        days = settings.order_history_retention_days if days is None else days
        removed = 0

        if days == 0:
            for path in self._files():
                try:
                    path.unlink()
                    removed += 1
                except OSError as e:
                    logger.error("Failed to remove order log", file=path.name, error=str(e))
            logger.info("Order history cleared", removed=removed)
            return removed

        cutoff = self._now().date() - timedelta(days=days)
        for path in self._files():
            try:
                if self._file_date(path.name) < cutoff:
                    path.unlink()
                    removed += 1
            except ValueError:
                logger.warning("Skipping order log with unexpected name", file=path.name)
            except OSError as e:
                logger.error("Failed to remove order log", file=path.name, error=str(e))

        logger.info("Order history cleaned", removed=removed, retention_days=days)
        return removed

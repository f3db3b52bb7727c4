"""
Processed-order ledger.
Remembers which order ids were already dispatched so an order is printed once, across polling
cycles and across restarts. Persisted as {"orders": [...], "lastUpdate": "<ISO-8601>"}.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import structlog

from order_agent.config import settings
from order_agent.errors import PersistenceError

logger = structlog.get_logger()


class ProcessedOrderLedger:
    """
    Insertion-ordered set of dispatched order ids backed by a JSON file.

    Ids are stored as strings, so 100 and "100" are the same order. Once the set grows past
    max_size only the retain_size most recently added ids are kept; orders evicted that way can
    be dispatched again (they are reprinted, never billed twice).
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        max_size: Optional[int] = None,
        retain_size: Optional[int] = None,
    ):
        self.path = Path(path) if path is not None else settings.processed_orders_path
        self.max_size = max_size if max_size is not None else settings.ledger_max_size
        self.retain_size = retain_size if retain_size is not None else settings.ledger_retain_size
        # dict keeps insertion order; values are unused
        self._orders: Dict[str, None] = {}
        self.last_update: Optional[str] = None

    def __len__(self) -> int:
        return len(self._orders)

    def __iter__(self) -> Iterator[str]:
        return iter(self._orders)

    def __contains__(self, order_id: Any) -> bool:
        return self.has(order_id)

    def load(self) -> bool:
        """
        Populate the in-memory set from the ledger file.
        A missing or unreadable file leaves an empty set (history fails open).

        Returns:
            True if the file was read (or did not exist yet), False if it was unreadable
        """
        if not self.path.exists():
            logger.info("Processed orders file not found, starting empty", path=str(self.path))
            self._orders = {}
            return True

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("ledger file is not a JSON object")
            orders = data.get("orders", [])
            if not isinstance(orders, list):
                raise ValueError("'orders' is not a list")
            self._orders = {str(order_id): None for order_id in orders}
            self.last_update = data.get("lastUpdate")
            logger.info(
                "Processed orders loaded",
                count=len(self._orders),
                last_update=self.last_update,
            )
            return True
        except (OSError, ValueError) as e:
            logger.error("Failed to load processed orders, starting empty", path=str(self.path), error=str(e))
            self._orders = {}
            return False

    def _write(self) -> None:
        self.last_update = datetime.now(timezone.utc).isoformat()
        document = {"orders": list(self._orders), "lastUpdate": self.last_update}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    def save(self) -> bool:
        """
        Persist the current set. Failures are logged, never raised, so a cycle can always finish.

        Returns:
            True if written
        """
        try:
            self._write()
        except PersistenceError as e:
            logger.error("Failed to save processed orders", error=str(e))
            return False
        logger.info("Processed orders saved", count=len(self._orders))
        return True

    def has(self, order_id: Any) -> bool:
        return str(order_id) in self._orders

    def add(self, order_id: Any) -> None:
        """Mark an order as processed, pruning (and persisting) if the set outgrew max_size."""
        self._orders[str(order_id)] = None
        if len(self._orders) > self.max_size:
            self.prune()

    def prune(self) -> None:
        before = len(self._orders)
        retained = list(self._orders)[-self.retain_size:] if self.retain_size > 0 else []
        self._orders = dict.fromkeys(retained)
        logger.info("Processed orders pruned", before=before, after=len(self._orders))
        self.save()

    def clear(self) -> bool:
        """Forget every processed order and persist the empty set."""
        self._orders = {}
        logger.info("Processed orders cleared")
        return self.save()

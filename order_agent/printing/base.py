"""
Printer interface.
The order pipeline only needs to submit an order and enumerate printers; how a job reaches the
device is up to the implementation.
"""

from abc import ABC, abstractmethod
from typing import Any


class Printer(ABC):
    """Base class for printer backends."""

    @abstractmethod
    def get_name(self) -> str:
        """Return the backend name (e.g. 'cups')."""
        pass

    @abstractmethod
    async def print_order(self, order: dict[str, Any], printer_name: str) -> None:
        """
        Print a receipt for the order.

        Args:
            order: Raw order dict as returned by the store API
            printer_name: Destination printer

        Raises:
            PrinterError: If the job could not be submitted
        """
        pass

    @abstractmethod
    async def list_printers(self) -> list[dict[str, Any]]:
        """
        Return the printers available to this backend.

        Returns:
            List of {"name": ..., "is_default": ...} dicts
        """
        pass

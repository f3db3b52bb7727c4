"""
Error taxonomy for the order agent.
"""

from typing import Any


class OrderAgentError(Exception):
    """Base exception for order agent errors."""

    pass


class ConfigurationError(OrderAgentError):
    """Raised when required configuration (credentials, vendor id) is missing. No network call is attempted."""

    pass


class FetchError(OrderAgentError):
    """Raised when every vendor-order retrieval strategy failed."""

    def __init__(self, message: str, failures: dict[str, str] | None = None):
        self.failures = failures or {}
        super().__init__(message)


class OwnershipViolation(OrderAgentError):
    """Raised by explicit single-order lookups when the order belongs to another vendor."""

    def __init__(self, order_id: Any, vendor_id: str):
        self.order_id = order_id
        self.vendor_id = vendor_id
        super().__init__(f"Order #{order_id} does not belong to vendor {vendor_id}")


class DispatchError(OrderAgentError):
    """Raised by an order handler that could not deliver an order (e.g. the printer failed)."""

    def __init__(self, order_id: Any, message: str):
        self.order_id = order_id
        super().__init__(f"Failed to dispatch order #{order_id}: {message}")


class PersistenceError(OrderAgentError):
    """Raised when local state (ledger, history, config) cannot be written."""

    pass


class PrinterError(OrderAgentError):
    """Raised when a print job cannot be submitted."""

    pass

"""
Store diagnostics for the setup screen: connection test and vendor listing.
"""

from typing import Any, Dict, List, Optional

import structlog

from order_agent.config import settings
from order_agent.models.agent import AgentConfig
from order_agent.services.order_fetcher import VendorOrderFetcher
from order_agent.services.vendor_resolver import parse_stores, resolve_vendor_id
from order_agent.services.woocommerce_client import WooCommerceAPIClient

logger = structlog.get_logger()

STRATEGY_LABELS = {
    "vendor_parameter": "WooCommerce API with vendor_id",
    "meta_filter": "WooCommerce API with vendor meta filter",
    "vendor_endpoint": "Dokan vendor orders API",
    "fetch_all_and_filter": "Local ownership filter",
}


async def test_connection(config: AgentConfig, client: Optional[WooCommerceAPIClient] = None) -> Dict[str, Any]:
    """
    Check that the credentials work and show which retrieval strategy finds the vendor's orders.
    Never raises; every step is recorded in "logs".

    Returns:
        {success, message, method, order_count, orders, logs, detected_vendor_id}
    """
    logs: List[str] = []

    def log_step(message: str) -> None:
        logger.info("Connection test step", step=message)
        logs.append(message)

    result: Dict[str, Any] = {
        "success": False,
        "message": "",
        "method": None,
        "order_count": 0,
        "orders": [],
        "logs": logs,
        "detected_vendor_id": None,
    }

    if not config.has_credentials():
        log_step("Incomplete configuration: API URL, username and password are required")
        result["message"] = "Incomplete configuration. API URL, username and password are required."
        return result

    own_client = client is None
    if own_client:
        client = WooCommerceAPIClient.from_config(config)

    try:
        vendor_id = config.vendor_id
        if vendor_id:
            log_step(f"Using configured vendor ID: {vendor_id}")
        else:
            log_step("Vendor ID not set, attempting automatic detection")
            vendor_id = await resolve_vendor_id(config, client)
            if not vendor_id:
                log_step("Could not detect the vendor ID")
                result["message"] = "A vendor ID is required and could not be detected automatically."
                return result
            log_step(f"Vendor ID detected: {vendor_id}")
            result["detected_vendor_id"] = vendor_id

        fetcher = VendorOrderFetcher(client)
        for attempt, strategy_result in enumerate(await fetcher.run_strategies(vendor_id), start=1):
            label = STRATEGY_LABELS.get(strategy_result.strategy, strategy_result.strategy)
            if strategy_result.found_orders:
                log_step(f"Attempt {attempt} ({label}) returned {len(strategy_result.orders)} orders")
                result.update(
                    success=True,
                    method=strategy_result.strategy,
                    order_count=len(strategy_result.orders),
                    orders=strategy_result.orders,
                    message=f"Found {len(strategy_result.orders)} orders via {label}",
                )
            elif strategy_result.succeeded:
                log_step(f"Attempt {attempt} ({label}) returned no orders")
            else:
                log_step(f"Attempt {attempt} ({label}) failed: {strategy_result.error}")

        if not result["success"]:
            log_step("No orders found with any method")
            result["message"] = "No processing orders found. Check the credentials and the vendor ID."
        return result
    except Exception as e:
        logger.error("Connection test failed", error=str(e), exc_info=True)
        log_step(f"Unexpected error: {e}")
        result["message"] = f"Connection test failed: {e}"
        return result
    finally:
        if own_client:
            await client.close()


# Not a test for pytest
test_connection.__test__ = False


async def list_vendors(config: AgentConfig, client: Optional[WooCommerceAPIClient] = None) -> List[Dict[str, Any]]:
    """
    List the site's Dokan vendor stores.

    Returns:
        [{id, name, email}] with placeholders for missing names and emails

    Raises:
        ConfigurationError: If credentials are incomplete
        WooCommerceAPIError: If the store list cannot be fetched
    """
    config.require_credentials()

    own_client = client is None
    if own_client:
        client = WooCommerceAPIClient.from_config(config)
    try:
        raw_stores = await client.list_stores({"per_page": settings.vendor_lookup_page_size})
    finally:
        if own_client:
            await client.close()

    vendors = []
    for store in parse_stores(raw_stores):
        vendors.append(
            {
                "id": store.id,
                "name": store.store_name or "Unnamed store",
                "email": store.contact_email or "Email not available",
            }
        )
    logger.info("Vendors listed", count=len(vendors))
    return vendors

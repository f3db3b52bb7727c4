"""
Vendor-scoped order retrieval.

Vendor filtering is not reliably supported by every WooCommerce/Dokan setup, so orders are
fetched with escalating strategies, each returning a tagged StrategyResult instead of raising:

1. vendor_parameter      - processing orders with a vendor_id query parameter
2. meta_filter           - processing orders with a structured meta_query on _dokan_vendor_id
3. vendor_endpoint       - the Dokan vendor orders endpoint (meta_filter again if unavailable)
4. fetch_all_and_filter  - the 50 newest processing orders, filtered locally by ownership

The first strategy that succeeds with a non-empty list wins. Results of strategies 1-3 are not
trusted: callers must still pass them through filter_by_vendor before dispatching.
Only one page is requested per call; orders beyond the page size wait for a later poll.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from order_agent.config import settings
from order_agent.errors import ConfigurationError, FetchError, OwnershipViolation
from order_agent.models.agent import AgentConfig
from order_agent.services.vendor_ownership import belongs_to_vendor, filter_by_vendor
from order_agent.services.woocommerce_client import WooCommerceAPIClient, WooCommerceAPIError

logger = structlog.get_logger()

PROCESSING_STATUS = "processing"
DOKAN_VENDOR_META_KEY = "_dokan_vendor_id"


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one retrieval strategy: the orders it returned, or why it failed."""

    strategy: str
    orders: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def found_orders(self) -> bool:
        return self.succeeded and len(self.orders) > 0


OrderStrategy = Callable[[WooCommerceAPIClient, str], Awaitable[StrategyResult]]


def _meta_query(vendor_id: str) -> str:
    return json.dumps([{"key": DOKAN_VENDOR_META_KEY, "value": vendor_id, "compare": "="}])


def _processing_params(per_page: int, **extra: Any) -> Dict[str, Any]:
    params: Dict[str, Any] = {"status": PROCESSING_STATUS, "per_page": per_page}
    params.update(extra)
    return params


async def by_vendor_parameter(client: WooCommerceAPIClient, vendor_id: str) -> StrategyResult:
    """Strategy 1: rely on server-side support for a vendor_id parameter (may be silently ignored)."""
    try:
        orders = await client.list_orders(_processing_params(settings.orders_page_size, vendor_id=vendor_id))
    except WooCommerceAPIError as e:
        return StrategyResult("vendor_parameter", error=str(e))
    return StrategyResult("vendor_parameter", orders)


async def by_meta_filter(client: WooCommerceAPIClient, vendor_id: str) -> StrategyResult:
    """Strategy 2: structured meta_query on the Dokan vendor meta key."""
    try:
        orders = await client.list_orders(
            _processing_params(settings.orders_page_size, meta_query=_meta_query(vendor_id))
        )
    except WooCommerceAPIError as e:
        return StrategyResult("meta_filter", error=str(e))
    return StrategyResult("meta_filter", orders)


async def by_vendor_endpoint(client: WooCommerceAPIClient, vendor_id: str) -> StrategyResult:
    """Strategy 3: Dokan's vendor-scoped orders endpoint, falling back to the meta filter."""
    try:
        orders = await client.list_vendor_orders(_processing_params(settings.orders_page_size))
        return StrategyResult("vendor_endpoint", orders)
    except WooCommerceAPIError as e:
        logger.warning(
            "Dokan vendor orders endpoint unavailable, retrying with meta filter",
            vendor_id=vendor_id,
            error=str(e),
        )
        endpoint_error = e

    try:
        orders = await client.list_orders(
            _processing_params(settings.orders_page_size, meta_query=_meta_query(vendor_id))
        )
    except WooCommerceAPIError as e:
        return StrategyResult("vendor_endpoint", error=f"{endpoint_error}; meta filter fallback: {e}")
    return StrategyResult("vendor_endpoint", orders)


async def fetch_all_and_filter(client: WooCommerceAPIClient, vendor_id: str) -> StrategyResult:
    """Strategy 4: newest processing orders, unfiltered, then the local ownership filter."""
    try:
        orders = await client.list_orders(
            _processing_params(settings.fetch_all_page_size, orderby="date", order="desc")
        )
    except WooCommerceAPIError as e:
        return StrategyResult("fetch_all_and_filter", error=str(e))

    logger.info(
        "Fetched unfiltered orders, applying ownership filter",
        vendor_id=vendor_id,
        total_count=len(orders),
    )
    return StrategyResult("fetch_all_and_filter", filter_by_vendor(orders, vendor_id))


DEFAULT_STRATEGIES: Sequence[OrderStrategy] = (
    by_vendor_parameter,
    by_meta_filter,
    by_vendor_endpoint,
    fetch_all_and_filter,
)


class VendorOrderFetcher:
    """Runs the retrieval strategies in order against one store client."""

    def __init__(
        self,
        client: WooCommerceAPIClient,
        strategies: Sequence[OrderStrategy] = DEFAULT_STRATEGIES,
    ):
        self.client = client
        self.strategies = tuple(strategies)

    async def run_strategies(self, vendor_id: str) -> List[StrategyResult]:
        """
        Try each strategy until one returns orders.

        Returns:
            Results of every strategy attempted, in order (the last one is the winner if any won)
        """
        if not vendor_id or not str(vendor_id).strip():
            raise ConfigurationError("Vendor ID is required to fetch orders")
        vendor_id = str(vendor_id).strip()

        results: List[StrategyResult] = []
        for strategy in self.strategies:
            result = await strategy(self.client, vendor_id)
            results.append(result)

            if result.found_orders:
                logger.info(
                    "Vendor orders found",
                    vendor_id=vendor_id,
                    strategy=result.strategy,
                    order_count=len(result.orders),
                )
                break

            if result.succeeded:
                logger.info("Strategy returned no orders", vendor_id=vendor_id, strategy=result.strategy)
            else:
                logger.warning(
                    "Strategy failed",
                    vendor_id=vendor_id,
                    strategy=result.strategy,
                    error=result.error,
                )
        return results

    async def fetch_vendor_orders(self, vendor_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the vendor's processing orders.

        Returns:
            Orders from the first strategy that found any; an empty list if strategies
            succeeded but found nothing

        Raises:
            ConfigurationError: If vendor_id is empty
            FetchError: If every strategy failed
        """
        results = await self.run_strategies(vendor_id)

        winner = results[-1] if results and results[-1].found_orders else None
        if winner:
            return winner.orders

        if any(result.succeeded for result in results):
            logger.info("No processing orders found for vendor", vendor_id=vendor_id)
            return []

        failures = {result.strategy: result.error or "" for result in results}
        raise FetchError(f"All order retrieval strategies failed for vendor {vendor_id}", failures=failures)

    async def get_order_details(self, order_id: int | str, vendor_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch one order, refusing to return it if it belongs to another vendor.

        Raises:
            WooCommerceAPIError: If the order cannot be fetched
            OwnershipViolation: If vendor_id is set and the order is not the vendor's
        """
        if not order_id:
            raise ValueError("order_id is required")

        order = await self.client.get_order(order_id)
        if vendor_id and not belongs_to_vendor(order, vendor_id):
            logger.warning(
                "Blocked access to order of another vendor",
                order_id=order_id,
                vendor_id=vendor_id,
                security=True,
            )
            raise OwnershipViolation(order_id, vendor_id)

        logger.info("Order details fetched", order_id=order_id)
        return order


async def fetch_vendor_orders(
    config: AgentConfig,
    vendor_id: Optional[str] = None,
    client: Optional[WooCommerceAPIClient] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch a vendor's processing orders using the stored credentials.
    Configuration is validated before any request is made.

    Args:
        config: Agent config with the store credentials
        vendor_id: Vendor to fetch for; defaults to config.vendor_id
        client: Existing client to reuse (left open); a temporary one is created otherwise
    """
    config.require_credentials()
    vendor_id = str(vendor_id or config.vendor_id or "").strip()
    if not vendor_id:
        raise ConfigurationError("Vendor ID is required to fetch orders")

    if client is not None:
        return await VendorOrderFetcher(client).fetch_vendor_orders(vendor_id)

    async with WooCommerceAPIClient.from_config(config) as own_client:
        return await VendorOrderFetcher(own_client).fetch_vendor_orders(vendor_id)

"""
Vendor id auto-detection from store credentials.
Used when no vendor id is configured: when saving the config, testing the connection, and
starting the listener.
"""

from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from order_agent.config import settings
from order_agent.models.agent import AgentConfig
from order_agent.models.woocommerce import DokanStore
from order_agent.services.woocommerce_client import WooCommerceAPIClient, WooCommerceAPIError

logger = structlog.get_logger()


def parse_stores(raw_stores: List[Dict[str, Any]]) -> List[DokanStore]:
    stores = []
    for raw in raw_stores:
        try:
            stores.append(DokanStore.model_validate(raw))
        except ValidationError as e:
            logger.debug("Skipping malformed store record", error=str(e))
    return stores


def match_store(stores: List[DokanStore], username: str) -> Optional[DokanStore]:
    """
    Find the store the username refers to.
    Email usernames match the store or owner email exactly (case-insensitive), then as a substring;
    any username may then match a store name as a substring.
    """
    needle = username.strip().lower()
    if not needle:
        return None

    if "@" in needle:
        for store in stores:
            if any(email.lower() == needle for email in store.emails):
                return store
        for store in stores:
            if any(needle in email.lower() for email in store.emails):
                return store

    for store in stores:
        if store.store_name and needle in store.store_name.lower():
            return store
    return None


async def _from_store_list(client: WooCommerceAPIClient, username: str) -> str:
    raw_stores = await client.list_stores({"per_page": settings.vendor_lookup_page_size})
    stores = parse_stores(raw_stores)
    logger.info("Vendor stores listed", store_count=len(stores))

    store = match_store(stores, username)
    if store is None:
        logger.warning("No vendor store matches the configured username")
        return ""

    logger.info("Vendor matched by store list", vendor_id=str(store.id), store_name=store.store_name)
    return str(store.id)


async def _from_current_user(client: WooCommerceAPIClient) -> str:
    user = await client.get_current_user()
    user_id = str(user.id)
    logger.info("Authenticated user found", user_id=user_id)

    try:
        owned = await client.list_stores({"owner_id": user_id})
        if owned and owned[0].get("id"):
            vendor_id = str(owned[0]["id"])
            logger.info("User owns a vendor store", user_id=user_id, vendor_id=vendor_id)
            return vendor_id
        logger.warning("User has no vendor store", user_id=user_id)
    except WooCommerceAPIError as e:
        logger.warning("Could not look up the user's store", user_id=user_id, error=str(e))

    # Best effort: on most Dokan sites the store id is the owner's user id
    logger.info("Using user id as vendor id", user_id=user_id)
    return user_id


def _vendor_ids_in_meta(orders: List[Dict[str, Any]]) -> set[str]:
    found: set[str] = set()
    for order in orders:
        meta_data = order.get("meta_data") if isinstance(order, dict) else None
        if not isinstance(meta_data, list):
            continue
        for meta in meta_data:
            if not isinstance(meta, dict):
                continue
            key = str(meta.get("key") or "")
            value = meta.get("value")
            if "vendor_id" in key and value not in (None, ""):
                found.add(str(value))
    return found


async def _from_order_meta(client: WooCommerceAPIClient) -> str:
    orders = await client.list_orders({"per_page": settings.vendor_detection_sample_size})
    vendor_ids = _vendor_ids_in_meta(orders)

    if len(vendor_ids) == 1:
        vendor_id = vendor_ids.pop()
        logger.info("Vendor identified from order metadata", vendor_id=vendor_id)
        return vendor_id
    if len(vendor_ids) > 1:
        logger.warning("Several vendor ids found in order metadata, not guessing", vendor_ids=sorted(vendor_ids))
    return ""


async def resolve_vendor_id(config: AgentConfig, client: Optional[WooCommerceAPIClient] = None) -> str:
    """
    Derive the vendor id from the store credentials. Never raises.

    Tries, in order: matching the username against the vendor store list, the authenticated
    user's own store (or the user id itself), and a scan of recent order metadata that only
    answers when exactly one vendor id shows up.

    Args:
        config: Agent config with the store credentials
        client: Existing client to reuse (left open); a temporary one is created otherwise

    Returns:
        The vendor id, or "" if it could not be determined
    """
    if not config.has_credentials():
        logger.warning("Incomplete credentials, cannot detect vendor id")
        return ""

    own_client = client is None
    if own_client:
        client = WooCommerceAPIClient.from_config(config)

    logger.info("Detecting vendor id from credentials")
    try:
        attempts = (
            ("store_list", lambda: _from_store_list(client, config.username)),
            ("current_user", lambda: _from_current_user(client)),
            ("order_meta", lambda: _from_order_meta(client)),
        )
        for name, attempt in attempts:
            try:
                vendor_id = await attempt()
            except WooCommerceAPIError as e:
                logger.warning("Vendor detection attempt failed", attempt=name, error=str(e))
                continue
            if vendor_id:
                return vendor_id

        logger.error("Could not detect vendor id automatically")
        return ""
    except Exception as e:
        logger.error("Vendor detection failed", error=str(e), exc_info=True)
        return ""
    finally:
        if own_client:
            await client.close()

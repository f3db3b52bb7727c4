"""
Vendor ownership checks for orders.
Dokan records vendor attribution in different places depending on plugin version and site
setup, so ownership is established from several locations: order meta_data, line-item
meta_data / vendor_id, and a set of top-level order fields. Any error counts as "not owned".
"""

from typing import Any, Iterable, List, Mapping

import structlog

logger = structlog.get_logger()

ORDER_META_VENDOR_KEYS = frozenset(
    {
        "_dokan_vendor_id",
        "dokan_vendor_id",
        "_vendor_id",
        "vendor_id",
        "_store_id",
        "store_owner_id",
    }
)
LINE_ITEM_META_VENDOR_KEYS = frozenset({"_dokan_vendor_id", "vendor_id", "_vendor_id"})
ORDER_VENDOR_FIELDS = (
    "store_id",
    "vendor_id",
    "seller_id",
    "store_owner_id",
    "dokan_vendor_id",
)


def _matches(value: Any, vendor_id: str) -> bool:
    # Empty values are never evidence, even against an empty-looking id
    if value is None or value == "" or value is False:
        return False
    return str(value) == vendor_id


def _meta_matches(meta_data: Any, keys: frozenset, vendor_id: str) -> bool:
    if not isinstance(meta_data, list):
        return False
    for meta in meta_data:
        if isinstance(meta, Mapping) and meta.get("key") in keys and _matches(meta.get("value"), vendor_id):
            return True
    return False


def ownership_evidence(order: Mapping[str, Any], vendor_id: str) -> str | None:
    """
    Return where the order's ownership by vendor_id was established, or None.
    Checks order meta_data, then line items, then top-level fields, stopping at the first match.
    """
    if _meta_matches(order.get("meta_data"), ORDER_META_VENDOR_KEYS, vendor_id):
        return "order_meta"

    line_items = order.get("line_items")
    if isinstance(line_items, list):
        for item in line_items:
            if not isinstance(item, Mapping):
                continue
            if _meta_matches(item.get("meta_data"), LINE_ITEM_META_VENDOR_KEYS, vendor_id):
                return "line_item_meta"
            if _matches(item.get("vendor_id"), vendor_id):
                return "line_item_vendor_id"

    for field in ORDER_VENDOR_FIELDS:
        if _matches(order.get(field), vendor_id):
            return f"field:{field}"

    return None


def belongs_to_vendor(order: Any, vendor_id: Any) -> bool:
    """
    Decide whether an order belongs to a vendor.

    Vendor ids are compared as strings, so 42 and "42" are the same vendor. Never raises:
    missing input, malformed records and unexpected errors all return False.

    Args:
        order: Order record (raw API dict)
        vendor_id: Vendor identifier (str or int)

    Returns:
        True if the order carries ownership evidence for the vendor
    """
    try:
        if not isinstance(order, Mapping) or vendor_id is None or str(vendor_id).strip() == "":
            logger.warning(
                "Ownership check skipped: order or vendor id missing",
                order_type=type(order).__name__,
                security=True,
            )
            return False

        vendor_id_str = str(vendor_id).strip()
        evidence = ownership_evidence(order, vendor_id_str)
        if evidence:
            logger.debug(
                "Order ownership confirmed",
                order_id=order.get("id"),
                vendor_id=vendor_id_str,
                evidence=evidence,
            )
            return True

        logger.warning(
            "Order does not belong to vendor",
            order_id=order.get("id"),
            vendor_id=vendor_id_str,
            security=True,
        )
        return False
    except Exception as e:
        logger.error("Ownership check failed", error=str(e), security=True)
        return False


def filter_by_vendor(orders: Iterable[Any], vendor_id: Any) -> List[Any]:
    """
    Keep only the orders that belong to the vendor, logging the ids of discarded orders for audit.
    Invalid input (no order list, no vendor id) yields an empty list.
    """
    if orders is None or isinstance(orders, (str, bytes, Mapping)) or not vendor_id:
        logger.warning("Batch ownership check received invalid parameters", security=True)
        return []

    orders = list(orders)
    verified = [order for order in orders if belongs_to_vendor(order, vendor_id)]

    if len(verified) < len(orders):
        blocked_ids = [
            order.get("id") if isinstance(order, Mapping) else None
            for order in orders
            if not any(order is kept for kept in verified)
        ]
        logger.warning(
            "Orders blocked by ownership check",
            vendor_id=str(vendor_id),
            blocked_count=len(orders) - len(verified),
            blocked_order_ids=blocked_ids,
            security=True,
        )

    logger.info(
        "Batch ownership check complete",
        vendor_id=str(vendor_id),
        verified_count=len(verified),
        total_count=len(orders),
    )
    return verified

"""
Plain-text receipt layout for thermal printers.
Compact layout: one line per fact where possible, sized to the configured column width.
"""

import textwrap
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from order_agent.models.woocommerce import Order

logger = structlog.get_logger()

STATUS_LABELS = {
    "pending": "Pending payment",
    "processing": "Processing",
    "on-hold": "On hold",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "refunded": "Refunded",
    "failed": "Failed",
    "trash": "Trash",
}

PAYMENT_STATUS_LABELS = {
    "processing": "Confirmed",
    "completed": "Confirmed",
    "on-hold": "Awaiting",
    "failed": "Failed",
    "pending": "Pending",
    "refunded": "Refunded",
}

MAX_PAYMENT_TITLE = 25


def translate_order_status(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def _amount(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _money(value: Any, currency: str) -> str:
    amount = f"{_amount(value):.2f}"
    return f"{currency} {amount}" if currency else amount


def _format_datetime(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def _payment_title(title: str) -> str:
    if len(title) <= MAX_PAYMENT_TITLE:
        return title
    return title[: MAX_PAYMENT_TITLE - 5] + "..."


def _payment_status(order: Order) -> str:
    date_paid = getattr(order, "date_paid", None)
    if date_paid:
        return f"Paid {_format_datetime(date_paid)[:10]}"
    return PAYMENT_STATUS_LABELS.get(order.status, "Not confirmed")


def render_receipt(raw_order: Dict[str, Any], width: int = 48, store_name: Optional[str] = None) -> str:
    """
    Render an order as a plain-text receipt.

    Args:
        raw_order: Order dict from the store API
        width: Receipt width in characters
        store_name: Shown in the header when set

    Returns:
        Receipt text, ending with blank lines for the paper cut
    """
    order = Order.model_validate(raw_order)
    currency = order.currency
    separator = "=" * width
    light_separator = "-" * width
    lines: List[str] = []

    def wrapped(text: str, indent: str = "", first: str = "") -> None:
        lines.extend(textwrap.wrap(text, width=width, initial_indent=first, subsequent_indent=indent) or [""])

    title = f"NEW ORDER - {store_name}" if store_name else "NEW ORDER"
    lines += [separator, title.center(width).rstrip(), separator]

    wrapped(f"#{order.id} | {_format_datetime(order.date_created)}".rstrip(" |"))
    header = []
    if order.number:
        header.append(f"No: {order.number}")
    if order.status:
        header.append(f"Status: {translate_order_status(order.status)}")
    if header:
        wrapped(" | ".join(header))

    # Payment
    lines.append(light_separator)
    payment = [_payment_title(order.payment_method_title) or "N/A", _payment_status(order)]
    transaction_id = getattr(order, "transaction_id", None)
    if transaction_id:
        payment.append(f"ID: {transaction_id}")
    wrapped("PAYMENT: " + " | ".join(payment), indent="  ")

    # Customer
    billing = order.billing
    lines.append(light_separator)
    lines.append("CUSTOMER:")
    contact = billing.full_name
    if billing.phone:
        contact = f"{contact} | {billing.phone}" if contact else billing.phone
    if contact:
        wrapped(contact)
    if billing.email:
        wrapped(billing.email)
    street = ", ".join(part for part in (billing.address_1, billing.address_2) if part)
    if street:
        wrapped(street)
    location = [part for part in (billing.city, billing.state) if part]
    if billing.postcode:
        location.append(f"Postcode: {billing.postcode}")
    if location:
        wrapped(" | ".join(location))

    vendor_id = order.get_meta("_dokan_vendor_id")
    order_store_name = getattr(order, "store_name", None)
    if order_store_name or vendor_id:
        store_line = f"Store: {order_store_name or 'N/A'}"
        if vendor_id:
            store_line += f" | ID: {vendor_id}"
        wrapped(store_line)

    # Items
    lines.append(light_separator)
    lines.append("ITEMS:")
    if not order.line_items:
        lines.append("No items")
    for item in order.line_items:
        quantity = int(item.quantity) if float(item.quantity).is_integer() else item.quantity
        item_line = f"{quantity or 1}x {item.name or 'Product'}"
        if item.sku:
            item_line += f" [{item.sku}]"
        elif item.product_id:
            item_line += f" [ID:{item.product_id}]"
        wrapped(item_line, indent="  ")

        prices = []
        if item.price:
            prices.append(f"Unit: {_money(item.price, currency)}")
        if _amount(item.subtotal):
            prices.append(f"Total: {_money(item.subtotal, currency)}")
        if prices:
            wrapped(" | ".join(prices), indent="  ", first="  ")

    # Totals
    lines.append(light_separator)
    totals = []
    if order.subtotal:
        totals.append(f"Subtotal: {_money(order.subtotal, currency)}")
    if _amount(order.shipping_total) > 0:
        totals.append(f"Shipping: {_money(order.shipping_total, currency)}")
    if _amount(order.discount_total) > 0:
        totals.append(f"Discount: -{_money(order.discount_total, currency)}")
    if _amount(order.total_tax) > 0:
        totals.append(f"Tax: {_money(order.total_tax, currency)}")
    if totals:
        wrapped(" | ".join(totals))
    wrapped(f"TOTAL: {_money(order.total, currency)}")

    if order.shipping_lines:
        methods = []
        for shipping in order.shipping_lines:
            method = shipping.method_title or "Shipping"
            if _amount(shipping.total) > 0:
                method += f" ({_money(shipping.total, currency)})"
            methods.append(method)
        wrapped("Delivery: " + " | ".join(methods), indent="  ")

    if order.customer_note:
        wrapped(f"Note: {order.customer_note}", indent="  ")

    lines.append(separator)
    lines.append(f"Printed: {datetime.now().strftime('%Y-%m-%d %H:%M')}")

    # Room for the cut
    return "\n".join(lines) + "\n\n\n\n"


def safe_render_receipt(raw_order: Dict[str, Any], width: int = 48, store_name: Optional[str] = None) -> str:
    """render_receipt that falls back to a minimal receipt when the order does not validate."""
    try:
        return render_receipt(raw_order, width=width, store_name=store_name)
    except ValidationError as e:
        logger.warning("Order failed validation, printing minimal receipt", order_id=raw_order.get("id"), error=str(e))
        separator = "=" * width
        return "\n".join([separator, f"ORDER #{raw_order.get('id', '?')}", separator]) + "\n\n\n\n"

"""
Pydantic models for WooCommerce orders and Dokan store API responses.
The polling pipeline passes orders around as the raw dicts the API returned; these models give
typed access where fields are actually read (receipts, vendor listings).
"""

from typing import Any

from pydantic import BaseModel

ORDER_STATUSES = (
    "pending",
    "processing",
    "on-hold",
    "completed",
    "cancelled",
    "refunded",
    "failed",
    "trash",
)


class MetaData(BaseModel):
    """Key/value annotation attached to orders and line items (vendor ownership lives here)."""

    id: int | None = None
    key: str = ""
    value: Any = None

    class Config:
        extra = "allow"


class Address(BaseModel):
    """Billing or shipping address block."""

    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    email: str | None = None
    phone: str | None = None

    class Config:
        extra = "allow"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class LineItem(BaseModel):
    """Order line item."""

    id: int | None = None
    name: str = ""
    product_id: int | None = None
    variation_id: int | None = None
    quantity: float = 0
    sku: str | None = None
    price: float | None = None
    subtotal: str = "0"
    total: str = "0"
    vendor_id: Any = None
    meta_data: list[MetaData] = []

    class Config:
        extra = "allow"


class ShippingLine(BaseModel):
    method_title: str = ""
    total: str = "0"

    class Config:
        extra = "allow"


class Order(BaseModel):
    """
    WooCommerce order as returned by /wp-json/wc/v3/orders.
    Unknown fields are preserved so a validated order can be dumped back unchanged.
    """

    id: int | str
    number: str | None = None
    status: str = ""
    currency: str = ""
    date_created: str | None = None
    total: str = "0"
    subtotal: str | None = None
    shipping_total: str = "0"
    discount_total: str = "0"
    total_tax: str = "0"
    payment_method_title: str = ""
    customer_note: str = ""
    billing: Address = Address()
    shipping: Address = Address()
    line_items: list[LineItem] = []
    shipping_lines: list[ShippingLine] = []
    meta_data: list[MetaData] = []

    class Config:
        extra = "allow"

    def get_meta(self, key: str) -> Any:
        """Return the value of the first meta_data entry with the given key, or None."""
        for meta in self.meta_data:
            if meta.key == key:
                return meta.value
        return None


class DokanStoreUser(BaseModel):
    id: int | None = None
    email: str | None = None

    class Config:
        extra = "allow"


class DokanStore(BaseModel):
    """Dokan vendor store record from /wp-json/dokan/v1/stores."""

    id: int | str
    store_name: str | None = None
    email: str | None = None
    user: DokanStoreUser | None = None

    class Config:
        extra = "allow"

    @property
    def emails(self) -> list[str]:
        """Store contact email and the owner's login email, whichever are set."""
        emails = [self.email, self.user.email if self.user else None]
        return [email for email in emails if email]

    @property
    def contact_email(self) -> str | None:
        if self.email:
            return self.email
        if self.user and self.user.email:
            return self.user.email
        return None


class WordPressUser(BaseModel):
    """Authenticated user from /wp-json/wp/v2/users/me."""

    id: int | str
    name: str | None = None
    slug: str | None = None

    class Config:
        extra = "allow"

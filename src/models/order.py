"""Order model type definitions for database operations."""

from typing import Any, Literal, TypedDict

# Fulfilment status values; "processing" until paid, "order placed" once paid.
OrderStatus = Literal["order placed", "processing", "shipped", "delivered", "cancelled"]

PaymentStatus = Literal["pending", "paid", "failed"]
PaymentMode = Literal["Pre Paid", "Cash on Delivery"]

STATUS_PROCESSING = "processing"
STATUS_ORDER_PLACED = "order placed"
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"


class OrderLineRecord(TypedDict):
    """A priced line, stored in the lines JSONB array.

    Amounts are integer minor units. line_total == unit_price * quantity.
    """

    product_id: str
    variant_id: str
    quantity: int
    unit_price: int
    line_total: int
    product_name: str
    variant_name: str
    image_url: str


class OrderRecord(TypedDict, total=False):
    """Order table row representation.

    Keyed by (user_id, created_at); order_id is the globally unique
    secondary identifier. created_at is epoch milliseconds.
    """

    user_id: str
    created_at: int
    order_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_mode: PaymentMode
    payment_details: str
    subtotal: int
    shipping_fee: int
    tax: int
    total: int
    currency: str
    lines: list[OrderLineRecord]
    shipping_address: dict[str, Any]
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    gateway_order_id: str | None
    gateway_payment_id: str | None
    gateway_signature: str | None


class OrderStatusUpdate(TypedDict, total=False):
    """Fields the reconciler or an admin may change after creation."""

    status: OrderStatus
    payment_status: PaymentStatus
    gateway_payment_id: str
    gateway_signature: str

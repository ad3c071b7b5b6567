"""Checkout and order Pydantic schemas for API request/response models.

Wire format is camelCase (productId, createdAt, ...). Request models
forbid unknown fields so loosely-shaped payloads never reach the pricer.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.order import OrderStatus

CheckoutSource = Literal["cart", "single"]

REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")
RESPONSE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CheckoutItemInput(BaseModel):
    """One requested cart line. Untrusted; never carries a price."""

    model_config = REQUEST_CONFIG

    product_id: str = Field(default="", description="Product identifier")
    variant_id: str = Field(default="", description="Variant identifier")
    quantity: Any = Field(
        default=None,
        description="Requested quantity; lines without a positive whole quantity are dropped",
    )


class ShippingAddress(BaseModel):
    """Shipping address snapshot stored on the order.

    Required fields default to blank so that a missing field surfaces as
    INVALID_ADDRESS from the order assembler rather than a schema error.
    """

    model_config = REQUEST_CONFIG

    user_label: str = Field(default="", description="Recipient label")
    phone_number: str = Field(default="", description="Contact phone number")
    specific_address: str = Field(default="", description="House / flat / building")
    street: str = Field(default="")
    area: str = Field(default="")
    postcode: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    country: str = Field(default="")
    latitude: float | None = Field(default=None)
    longitude: float | None = Field(default=None)
    place_id: str | None = Field(default=None, description="Geocoder place id")


class CheckoutCreateRequest(BaseModel):
    """Schema for POST /checkout."""

    model_config = REQUEST_CONFIG

    source: CheckoutSource = Field(default="cart", description="Whether the checkout came from the cart or a buy-now button")
    items: list[CheckoutItemInput] = Field(default_factory=list, description="Requested lines")
    shipping_address: ShippingAddress | None = Field(default=None, description="Where to ship the order")
    customer_name: str | None = Field(default=None)
    customer_email: str | None = Field(default=None)
    customer_phone: str | None = Field(default=None)
    guest_id: str | None = Field(default=None, description="Guest token from a previous checkout in this browser")


class CheckoutCreateResponse(BaseModel):
    """Everything the frontend needs to open the Razorpay checkout widget."""

    model_config = RESPONSE_CONFIG

    order_id: str = Field(description="Order identifier, echoed back on confirmation")
    created_at: int = Field(description="Order creation time in epoch milliseconds, echoed back on confirmation")
    amount: int = Field(description="Amount to pay in minor units")
    currency: str = Field(description="ISO currency code")
    gateway_order_id: str = Field(description="Razorpay order id")
    gateway_key_id: str = Field(description="Razorpay public key id")
    source: CheckoutSource = Field(description="Checkout source")
    is_guest: bool = Field(description="Whether the order belongs to a guest principal")
    guest_id: str | None = Field(default=None, description="Guest principal id, only for guest checkouts")


class CheckoutConfirmRequest(BaseModel):
    """Schema for POST /checkout/confirm.

    Fields are optional at the schema level; the reconciler reports
    missing ones as INVALID_CONFIRMATION.
    """

    model_config = REQUEST_CONFIG

    order_id: str | None = Field(default=None)
    created_at: int | None = Field(default=None)
    gateway_order_id: str | None = Field(default=None)
    gateway_payment_id: str | None = Field(default=None)
    gateway_signature: str | None = Field(default=None)
    guest_id: str | None = Field(default=None, description="Guest id returned by checkout creation")


class CheckoutConfirmResponse(BaseModel):
    """Schema for a successful confirmation."""

    model_config = RESPONSE_CONFIG

    order_id: str
    created_at: int
    message: str = Field(default="Payment confirmed")


class OrderLineSchema(BaseModel):
    """Schema for a single priced line of an order."""

    model_config = RESPONSE_CONFIG

    product_id: str
    variant_id: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=1, description="Unit price in minor units")
    line_total: int = Field(ge=1, description="unit_price * quantity")
    product_name: str
    variant_name: str
    image_url: str = ""


class OrderResponse(BaseModel):
    """Schema for order API responses. The gateway signature is never returned."""

    model_config = RESPONSE_CONFIG

    user_id: str
    created_at: int
    order_id: str
    status: str
    payment_status: str
    payment_mode: str
    payment_details: str
    subtotal: int
    shipping_fee: int
    tax: int
    total: int
    currency: str
    lines: list[OrderLineSchema]
    shipping_address: dict
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    model_config = RESPONSE_CONFIG

    items: list[OrderResponse] = Field(description="Orders, most recent first")


class OrderStatusUpdateRequest(BaseModel):
    """Schema for PUT /orders/status (admin)."""

    model_config = REQUEST_CONFIG

    user_id: str = Field(min_length=1)
    created_at: int
    status: OrderStatus


class OrderStatusUpdateResponse(BaseModel):
    """Schema for an admin status update result."""

    model_config = RESPONSE_CONFIG

    user_id: str
    created_at: int
    status: str
    message: str = Field(default="Order status updated")

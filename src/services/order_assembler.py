"""Order snapshot assembly."""

import time
from typing import Any
from uuid import uuid4

from src.api.middleware.error_handler import ValidationError
from src.models.order import PAYMENT_PENDING, STATUS_PROCESSING, OrderRecord
from src.schemas.checkout import ShippingAddress
from src.services.identity_service import CheckoutPrincipal
from src.services.pricing_service import PricedCart

REQUIRED_ADDRESS_FIELDS = (
    "user_label",
    "phone_number",
    "specific_address",
    "street",
    "area",
    "postcode",
    "city",
    "state",
    "country",
)

# Reserved for future shipping and tax policy.
SHIPPING_FEE = 0
TAX = 0


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def validate_shipping_address(address: ShippingAddress | None) -> dict[str, Any]:
    """Check required address fields and return the address as stored.

    Raises:
        ValidationError: INVALID_ADDRESS when the address or a required field is missing or blank.
    """
    if address is None:
        raise ValidationError("Invalid shipping address", code="INVALID_ADDRESS")

    missing = [field for field in REQUIRED_ADDRESS_FIELDS if not getattr(address, field).strip()]
    if missing:
        raise ValidationError(
            "Invalid shipping address",
            code="INVALID_ADDRESS",
            details=[{"loc": ["shippingAddress", field], "msg": "Field is required", "type": "missing"} for field in missing],
        )

    return address.model_dump(by_alias=True, exclude_none=True)


def _contact(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def assemble_order(
    principal: CheckoutPrincipal,
    priced: PricedCart,
    shipping_address: ShippingAddress | None,
    currency: str,
    customer_name: str | None = None,
    customer_email: str | None = None,
    customer_phone: str | None = None,
    order_id: str | None = None,
    created_at: int | None = None,
) -> OrderRecord:
    """Build a pending order snapshot.

    Args:
        principal: Owner of the order.
        priced: Priced lines and subtotal.
        shipping_address: Shipping address from the request.
        currency: ISO currency code.
        customer_name: Optional contact name.
        customer_email: Optional contact email.
        customer_phone: Optional contact phone.
        order_id: Pre-generated order id; a fresh UUID4 when omitted.
        created_at: Creation time in epoch ms; now when omitted.

    Returns:
        OrderRecord: Snapshot with status "processing" and payment "pending".

    Raises:
        ValidationError: INVALID_ADDRESS.
    """
    address = validate_shipping_address(shipping_address)

    return OrderRecord(
        user_id=principal.id,
        created_at=created_at if created_at is not None else now_ms(),
        order_id=order_id or str(uuid4()),
        status=STATUS_PROCESSING,
        payment_status=PAYMENT_PENDING,
        payment_mode="Pre Paid",
        payment_details="Razorpay",
        subtotal=priced.subtotal,
        shipping_fee=SHIPPING_FEE,
        tax=TAX,
        total=priced.subtotal + SHIPPING_FEE + TAX,
        currency=currency,
        lines=[dict(line) for line in priced.lines],
        shipping_address=address,
        customer_name=_contact(customer_name),
        customer_email=_contact(customer_email),
        customer_phone=_contact(customer_phone),
        gateway_order_id=None,
        gateway_payment_id=None,
        gateway_signature=None,
    )


def with_gateway_order(order: OrderRecord, gateway_order_id: str) -> OrderRecord:
    """Return a copy of the snapshot bound to a gateway order."""
    return OrderRecord(**{**order, "gateway_order_id": gateway_order_id})

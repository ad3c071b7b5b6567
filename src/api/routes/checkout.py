"""Checkout API routes for Razorpay integration."""

from fastapi import APIRouter, Query, status

from src.api.deps import AdminUser, CheckoutServiceDep, OptionalUser
from src.schemas.checkout import (
    CheckoutConfirmRequest,
    CheckoutConfirmResponse,
    CheckoutCreateRequest,
    CheckoutCreateResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderStatusUpdateResponse,
)

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post(
    "",
    response_model=CheckoutCreateResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create checkout",
    description="Prices the cart from the catalog, creates a Razorpay order and stores a pending order. Supports both authenticated users and guests.",
)
async def create_checkout(
    data: CheckoutCreateRequest,
    user: OptionalUser,
    service: CheckoutServiceDep,
) -> CheckoutCreateResponse:
    """Create a pending order and its Razorpay order.

    The frontend opens the Razorpay widget with the returned gateway order
    id and key id, then posts the widget's result to /checkout/confirm.

    Args:
        data: Cart, shipping address and contact details.
        user: Authenticated user, or None for guests.
        service: Checkout service.

    Returns:
        CheckoutCreateResponse: Amount and gateway details for the widget.
    """
    result = await service.create_checkout(data, user)
    return CheckoutCreateResponse(**result)


@router.post(
    "/confirm",
    response_model=CheckoutConfirmResponse,
    summary="Confirm payment",
    description="Verifies the Razorpay payment signature and marks the order as paid. Safe to retry.",
)
async def confirm_payment(
    data: CheckoutConfirmRequest,
    user: OptionalUser,
    service: CheckoutServiceDep,
) -> CheckoutConfirmResponse:
    """Confirm a payment reported by the Razorpay widget.

    Args:
        data: Order key and Razorpay payment result.
        user: Authenticated user, or None for guests (who send guestId).
        service: Checkout service.

    Returns:
        CheckoutConfirmResponse: The confirmed order key.
    """
    result = await service.confirm_payment(data, user)
    return CheckoutConfirmResponse(**result)


# Orders router - mounted separately at /orders
orders_router = APIRouter(prefix="/orders", tags=["orders"])


@orders_router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Returns the authenticated user's orders, most recent first. Admins may pass all=true to list every order.",
)
async def list_orders(
    user: OptionalUser,
    service: CheckoutServiceDep,
    all: bool = Query(default=False, description="List every order (admin only)"),
) -> OrderListResponse:
    """List orders for the current user, or all orders for an admin.

    Args:
        user: Authenticated user; guests get 401.
        service: Checkout service.
        all: Whether to list every order.

    Returns:
        OrderListResponse: List of orders.
    """
    if all:
        orders = await service.list_all_orders(user)
    else:
        orders = await service.list_orders(user)

    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@orders_router.put(
    "/status",
    response_model=OrderStatusUpdateResponse,
    summary="Update order status",
    description="Sets the fulfilment status of a paid order. Admin only.",
)
async def update_order_status(
    data: OrderStatusUpdateRequest,
    admin: AdminUser,
    service: CheckoutServiceDep,
) -> OrderStatusUpdateResponse:
    """Update the fulfilment status of an order.

    Args:
        data: Order key and new status.
        admin: Authenticated admin.
        service: Checkout service.

    Returns:
        OrderStatusUpdateResponse: The new status.
    """
    order = await service.update_order_status(admin, data.user_id, data.created_at, data.status)
    return OrderStatusUpdateResponse(
        user_id=order["user_id"],
        created_at=order["created_at"],
        status=order["status"],
    )

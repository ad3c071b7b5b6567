"""Checkout and order business logic service."""

import logging
from typing import Any

from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from src.core.config import Settings, get_settings
from src.models.order import (
    PAYMENT_PAID,
    PAYMENT_PENDING,
    STATUS_ORDER_PLACED,
    OrderRecord,
    OrderStatusUpdate,
)
from src.schemas.auth import UserContext
from src.schemas.checkout import CheckoutConfirmRequest, CheckoutCreateRequest
from src.services.catalog_service import CatalogReader, SupabaseCatalogReader
from src.services.identity_service import resolve_principal
from src.services.order_assembler import assemble_order, now_ms, validate_shipping_address, with_gateway_order
from src.services.order_store import OrderKeyConflictError, OrderStore, SupabaseOrderStore
from src.services.payment_gateway import RazorpayGateway
from src.services.pricing_service import PricingService, normalize_items

logger = logging.getLogger(__name__)

CONFIRMATION_FIELDS = ("order_id", "created_at", "gateway_order_id", "gateway_payment_id", "gateway_signature")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class CheckoutService:
    """Service for Razorpay checkout, payment confirmation and order management."""

    def __init__(
        self,
        catalog: CatalogReader | None = None,
        store: OrderStore | None = None,
        gateway: RazorpayGateway | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize checkout service with its collaborators.

        Args:
            catalog: Catalog reader; Supabase-backed by default.
            store: Order store; Supabase-backed by default.
            gateway: Payment gateway adapter; Razorpay REST by default.
            settings: Optional settings override.
        """
        self.settings = settings or get_settings()
        self.catalog = catalog or SupabaseCatalogReader(self.settings)
        self.store = store or SupabaseOrderStore(self.settings)
        self.gateway = gateway or RazorpayGateway(self.settings)
        self.pricing = PricingService(self.catalog)

    async def create_checkout(
        self,
        request: CheckoutCreateRequest,
        user: UserContext | None = None,
    ) -> dict[str, Any]:
        """Price a cart, open a Razorpay order and persist a pending order.

        Nothing is persisted unless the gateway order was created.

        Args:
            request: Checkout request body.
            user: Verified user, or None for a guest checkout.

        Returns:
            dict: Contains order_id, created_at, amount, currency,
                gateway_order_id, gateway_key_id, source, is_guest and,
                for guests, guest_id.

        Raises:
            ValidationError: EMPTY_CART, INVALID_QUANTITY, INVALID_PRICE,
                VARIANT_MISMATCH or INVALID_ADDRESS.
            NotFoundError: PRODUCT_NOT_FOUND or VARIANT_NOT_FOUND.
            UpstreamError: GATEWAY_UNAVAILABLE.
            InternalError: STORAGE_ERROR.
        """
        validate_shipping_address(request.shipping_address)

        principal = resolve_principal(user, request.guest_id, self.settings.guest_id_prefix)
        items = normalize_items(request.items)
        priced = await self.pricing.price_items(items)

        order = assemble_order(
            principal,
            priced,
            request.shipping_address,
            currency=self.settings.currency,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
        )

        gateway_order = await self.gateway.create_order(order["total"], receipt=order["order_id"])
        order = await self._insert_order(with_gateway_order(order, gateway_order.gateway_order_id))

        logger.info(
            "Created order %s for %s (amount=%s %s, lines=%d, source=%s)",
            order["order_id"],
            "guest" if principal.is_guest else "user",
            order["total"],
            order["currency"],
            len(order["lines"]),
            request.source,
        )

        result: dict[str, Any] = {
            "order_id": order["order_id"],
            "created_at": order["created_at"],
            "amount": order["total"],
            "currency": order["currency"],
            "gateway_order_id": gateway_order.gateway_order_id,
            "gateway_key_id": self.gateway.key_id,
            "source": request.source,
            "is_guest": principal.is_guest,
        }
        if principal.is_guest:
            result["guest_id"] = principal.id
        return result

    async def _insert_order(self, order: OrderRecord) -> OrderRecord:
        """Insert a pending order, moving created_at forward on key collisions."""
        attempts = self.settings.order_key_retry_attempts

        for attempt in range(1, attempts + 1):
            try:
                return await self.store.put_order(order)
            except OrderKeyConflictError:
                if attempt == attempts:
                    logger.error(
                        "Order key still taken after %d attempts for order %s",
                        attempts,
                        order["order_id"],
                    )
                    break
                logger.warning(
                    "Order key (%s, %s) taken, retrying order %s",
                    order["user_id"],
                    order["created_at"],
                    order["order_id"],
                )
                order = OrderRecord(**{**order, "created_at": max(order["created_at"] + 1, now_ms())})
            except PostgrestAPIError as e:
                logger.error("Failed to store order %s: %s", order["order_id"], e.message)
                raise InternalError("Failed to store order", code="STORAGE_ERROR") from e

        raise InternalError("Failed to store order", code="STORAGE_ERROR")

    async def confirm_payment(
        self,
        request: CheckoutConfirmRequest,
        user: UserContext | None = None,
    ) -> dict[str, Any]:
        """Reconcile a client-reported payment into the stored order.

        The signature is verified before any storage access. Replaying the
        same confirmation succeeds without writing.

        Args:
            request: Confirmation body from the gateway checkout widget.
            user: Verified user, or None for a guest confirmation.

        Returns:
            dict: Contains order_id, created_at and message.

        Raises:
            ValidationError: INVALID_CONFIRMATION.
            ConflictError: SIGNATURE_MISMATCH, GATEWAY_ORDER_MISMATCH,
                PAYMENT_AMOUNT_MISMATCH or PAYMENT_ALREADY_CAPTURED.
            NotFoundError: ORDER_NOT_FOUND.
            UpstreamError: GATEWAY_UNAVAILABLE during the amount cross-check.
            InternalError: GATEWAY_NOT_CONFIGURED or STORAGE_ERROR.
        """
        missing = [field for field in CONFIRMATION_FIELDS if _is_blank(getattr(request, field))]
        if missing:
            raise ValidationError(
                "Missing payment confirmation fields",
                code="INVALID_CONFIRMATION",
                details=[{"loc": ["body", field], "msg": "Field is required", "type": "missing"} for field in missing],
            )

        order_id = request.order_id.strip()
        created_at = request.created_at
        gateway_order_id = request.gateway_order_id.strip()
        payment_id = request.gateway_payment_id.strip()
        signature = request.gateway_signature.strip()

        if not self.gateway.verify_signature(gateway_order_id, payment_id, signature):
            logger.warning("Signature mismatch on confirmation of order %s", order_id)
            raise ConflictError("Payment signature verification failed", code="SIGNATURE_MISMATCH")

        principal = resolve_principal(user, request.guest_id, self.settings.guest_id_prefix)

        order = await self.store.get_order(principal.id, created_at)
        if not order or order.get("order_id") != order_id:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")

        if order.get("gateway_order_id") != gateway_order_id:
            logger.warning("Gateway order mismatch on confirmation of order %s", order_id)
            raise ConflictError("Payment does not belong to this order", code="GATEWAY_ORDER_MISMATCH")

        if order.get("payment_status") == PAYMENT_PAID:
            return self._settled_result(order, payment_id)

        if self.settings.razorpay_verify_amount_on_confirm:
            await self._check_gateway_amount(order)

        fields = OrderStatusUpdate(
            status=STATUS_ORDER_PLACED,
            payment_status=PAYMENT_PAID,
            gateway_payment_id=payment_id,
            gateway_signature=signature,
        )
        try:
            updated = await self.store.update_order(
                principal.id,
                created_at,
                fields,
                expected={"gateway_order_id": gateway_order_id, "payment_status": PAYMENT_PENDING},
            )
        except PostgrestAPIError as e:
            logger.error("Failed to confirm order %s: %s", order_id, e.message)
            raise InternalError("Failed to update order", code="STORAGE_ERROR") from e

        if updated is None:
            # Settled concurrently; report against the row that won.
            current = await self.store.get_order(principal.id, created_at)
            if current and current.get("payment_status") == PAYMENT_PAID:
                return self._settled_result(current, payment_id)
            logger.error("Conditional update matched no row for order %s", order_id)
            raise InternalError("Failed to update order", code="STORAGE_ERROR")

        logger.info("Payment %s confirmed for order %s", payment_id, order_id)
        return {"order_id": order_id, "created_at": created_at, "message": "Payment confirmed"}

    def _settled_result(self, order: OrderRecord, payment_id: str) -> dict[str, Any]:
        """Outcome of confirming an order that is already paid."""
        if order.get("gateway_payment_id") != payment_id:
            logger.warning("Order %s already captured by another payment", order["order_id"])
            raise ConflictError("Order has already been paid", code="PAYMENT_ALREADY_CAPTURED")

        logger.info("Payment %s already confirmed for order %s", payment_id, order["order_id"])
        return {
            "order_id": order["order_id"],
            "created_at": order["created_at"],
            "message": "Payment already confirmed",
        }

    async def _check_gateway_amount(self, order: OrderRecord) -> None:
        gateway_order = await self.gateway.fetch_order(order["gateway_order_id"])

        if gateway_order.amount != order["total"] or gateway_order.currency != self.settings.currency:
            logger.error(
                "Gateway order %s reports %s %s, order %s expects %s %s",
                gateway_order.gateway_order_id,
                gateway_order.amount,
                gateway_order.currency,
                order["order_id"],
                order["total"],
                self.settings.currency,
            )
            raise ConflictError("Payment amount does not match the order", code="PAYMENT_AMOUNT_MISMATCH")

    async def list_orders(self, user: UserContext | None) -> list[OrderRecord]:
        """List the caller's orders, most recent first.

        Raises:
            AuthenticationError: UNAUTHORIZED for guests.
        """
        if user is None or not user.user_id.strip():
            raise AuthenticationError("Sign in to view orders", code="UNAUTHORIZED")

        return await self.store.list_orders_for_user(user.user_id.strip())

    def _require_admin(self, user: UserContext | None) -> UserContext:
        if user is None:
            raise AuthenticationError("Authentication required", code="UNAUTHORIZED")
        if user.role != self.settings.admin_role:
            raise AuthorizationError("Admin access required", code="FORBIDDEN")
        return user

    async def list_all_orders(self, user: UserContext | None) -> list[OrderRecord]:
        """List every order, most recent first (admin only).

        Raises:
            AuthenticationError: UNAUTHORIZED without credentials.
            AuthorizationError: FORBIDDEN for non-admins.
        """
        self._require_admin(user)
        return await self.store.list_all_orders()

    async def update_order_status(
        self,
        user: UserContext | None,
        user_id: str,
        created_at: int,
        status: str,
    ) -> OrderRecord:
        """Set the fulfilment status of a paid order (admin only).

        Payment fields are never touched.

        Args:
            user: Caller; must carry the admin role.
            user_id: Owner of the order.
            created_at: Order creation time in epoch ms.
            status: New fulfilment status.

        Returns:
            OrderRecord: The updated order.

        Raises:
            AuthenticationError: UNAUTHORIZED without credentials.
            AuthorizationError: FORBIDDEN for non-admins.
            NotFoundError: ORDER_NOT_FOUND.
            ConflictError: ORDER_NOT_PAID.
        """
        admin = self._require_admin(user)

        order = await self.store.get_order(user_id, created_at)
        if not order:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        if order.get("payment_status") != PAYMENT_PAID:
            raise ConflictError("Only paid orders can change fulfilment status", code="ORDER_NOT_PAID")

        updated = await self.store.update_order(
            user_id,
            created_at,
            OrderStatusUpdate(status=status),
            expected={"payment_status": PAYMENT_PAID},
        )
        if updated is None:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")

        logger.info(
            "Order %s status changed from %s to %s by %s",
            order["order_id"],
            order.get("status"),
            status,
            admin.user_id,
        )
        return updated

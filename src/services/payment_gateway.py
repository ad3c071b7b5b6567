"""Razorpay payment gateway adapter with retry logic and signature verification."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.api.middleware.error_handler import InternalError, UpstreamError, ValidationError
from src.core.config import Settings, get_settings
from src.core.razorpay import create_razorpay_client

logger = logging.getLogger(__name__)

# Retry configuration for idempotent reads
MAX_RETRIES = 3
MIN_WAIT_SECONDS = 0.2
MAX_WAIT_SECONDS = 2


@dataclass(frozen=True)
class GatewayOrder:
    """A payment intent as the gateway reports it."""

    gateway_order_id: str
    amount: int
    currency: str


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Hex HMAC-SHA256 of "<order_id>|<payment_id>" keyed by the gateway secret."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    """Razorpay orders API client.

    Creation is never retried: a timed-out POST may still have created the
    gateway order, and the caller discards the pending snapshot anyway.
    Fetches are idempotent and retried on transport errors.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize gateway adapter.

        Args:
            settings: Optional settings override.
            transport: Optional HTTP transport override (tests use httpx.MockTransport).
        """
        self.settings = settings or get_settings()
        self.transport = transport

    @property
    def key_id(self) -> str:
        """Public key id handed to the frontend widget."""
        return self.settings.razorpay_key_id

    def _client(self) -> httpx.AsyncClient:
        return create_razorpay_client(self.settings, self.transport)

    async def create_order(self, amount: int, receipt: str) -> GatewayOrder:
        """Create a payment intent.

        Args:
            amount: Amount in minor units; must be a positive integer.
            receipt: Merchant reference; the order id.

        Returns:
            GatewayOrder: The created gateway order.

        Raises:
            ValidationError: INVALID_AMOUNT for a non-positive or non-integer amount.
            UpstreamError: GATEWAY_UNAVAILABLE on missing keys, transport failure or a bad response.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"Invalid amount: {amount!r}", code="INVALID_AMOUNT")

        if not self.settings.is_razorpay_configured:
            logger.error("Cannot create Razorpay order: keys not configured")
            raise UpstreamError("Payment gateway is not available", code="GATEWAY_UNAVAILABLE")

        payload = {
            "amount": amount,
            "currency": self.settings.currency,
            "receipt": receipt,
            "payment_capture": 1,
        }

        try:
            async with self._client() as client:
                response = await client.post("/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error("Razorpay order creation failed for receipt %s: %s", receipt, e)
            raise UpstreamError("Payment gateway is not available", code="GATEWAY_UNAVAILABLE") from e

        if response.is_error:
            logger.error(
                "Razorpay order creation returned %s for receipt %s: %s",
                response.status_code,
                receipt,
                response.text[:500],
            )
            raise UpstreamError("Payment gateway rejected the order", code="GATEWAY_UNAVAILABLE")

        order = self._parse_order(response, fallback_amount=amount)
        if order is None:
            logger.error("Razorpay order creation returned no order id for receipt %s", receipt)
            raise UpstreamError("Payment gateway returned an invalid response", code="GATEWAY_UNAVAILABLE")

        logger.info("Created Razorpay order %s for receipt %s (amount=%s)", order.gateway_order_id, receipt, amount)
        return order

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=MIN_WAIT_SECONDS, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    async def _get_order(self, gateway_order_id: str) -> httpx.Response:
        """GET an order with retry logic."""
        async with self._client() as client:
            return await client.get(f"/orders/{gateway_order_id}")

    async def fetch_order(self, gateway_order_id: str) -> GatewayOrder:
        """Fetch an existing payment intent.

        Args:
            gateway_order_id: Razorpay order id.

        Returns:
            GatewayOrder: The gateway's view of the order.

        Raises:
            UpstreamError: GATEWAY_UNAVAILABLE on missing keys, transport failure or a bad response.
        """
        if not self.settings.is_razorpay_configured:
            raise UpstreamError("Payment gateway is not available", code="GATEWAY_UNAVAILABLE")

        try:
            response = await self._get_order(gateway_order_id)
        except httpx.HTTPError as e:
            logger.error("Razorpay order fetch failed for %s: %s", gateway_order_id, e)
            raise UpstreamError("Payment gateway is not available", code="GATEWAY_UNAVAILABLE") from e

        if response.is_error:
            logger.error("Razorpay order fetch returned %s for %s", response.status_code, gateway_order_id)
            raise UpstreamError("Payment gateway lookup failed", code="GATEWAY_UNAVAILABLE")

        order = self._parse_order(response)
        if order is None:
            raise UpstreamError("Payment gateway returned an invalid response", code="GATEWAY_UNAVAILABLE")
        return order

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        """Check a client-supplied payment signature.

        Comparison is constant-time. Returns False for a mismatch of any kind.

        Raises:
            InternalError: GATEWAY_NOT_CONFIGURED if the secret is missing.
        """
        secret = self.settings.razorpay_key_secret
        if not secret:
            logger.error("Cannot verify payment signature: Razorpay key secret not configured")
            raise InternalError("Payment verification is not configured", code="GATEWAY_NOT_CONFIGURED")

        expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    @staticmethod
    def _parse_order(response: httpx.Response, fallback_amount: int | None = None) -> GatewayOrder | None:
        try:
            data: Any = response.json()
        except ValueError:
            return None

        if not isinstance(data, dict) or not data.get("id"):
            return None

        amount = data.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int):
            if fallback_amount is None:
                return None
            amount = fallback_amount

        return GatewayOrder(
            gateway_order_id=str(data["id"]),
            amount=amount,
            currency=str(data.get("currency") or ""),
        )

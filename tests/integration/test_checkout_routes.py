"""Integration tests for checkout API endpoints."""

from collections.abc import Callable
from typing import Any

import httpx
from fastapi.testclient import TestClient

from src.core.config import Settings
from src.services.payment_gateway import compute_signature


def checkout_body(shipping_address: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Build a POST /checkout body for P1/V1 x2."""
    return {
        "items": [{"productId": "P1", "variantId": "V1", "quantity": 2}],
        "shippingAddress": shipping_address,
        **overrides,
    }


def confirm_body(settings: Settings, created: dict[str, Any], payment_id: str = "pay_Test0001") -> dict[str, Any]:
    """Build a signed POST /checkout/confirm body from a checkout response."""
    body = {
        "orderId": created["orderId"],
        "createdAt": created["createdAt"],
        "gatewayOrderId": created["gatewayOrderId"],
        "gatewayPaymentId": payment_id,
        "gatewaySignature": compute_signature(settings.razorpay_key_secret, created["gatewayOrderId"], payment_id),
    }
    if "guestId" in created:
        body["guestId"] = created["guestId"]
    return body


class TestCreateCheckout:
    """Tests for POST /api/v1/checkout endpoint."""

    def test_guest_checkout(self, client: TestClient, shipping_address: dict[str, Any]) -> None:
        """Test checkout creation for a guest returns camelCase fields and a guest id."""
        response = client.post("/api/v1/checkout", json=checkout_body(shipping_address, guestId="tab-42"))

        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == 100000
        assert data["currency"] == "INR"
        assert data["gatewayOrderId"].startswith("order_")
        assert data["gatewayKeyId"] == "rzp_test_key_id"
        assert data["isGuest"] is True
        assert data["guestId"] == "guest_tab-42"
        assert data["source"] == "cart"
        assert isinstance(data["createdAt"], int)

    def test_authenticated_checkout_omits_guest_id(
        self,
        client: TestClient,
        token_factory: Callable[..., str],
        shipping_address: dict[str, Any],
    ) -> None:
        """Test checkout creation for a signed-in user."""
        response = client.post(
            "/api/v1/checkout",
            json=checkout_body(shipping_address, guestId="tab-42"),
            headers={"Authorization": f"Bearer {token_factory(sub='user-123')}"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["isGuest"] is False
        assert "guestId" not in data

    def test_expired_token_checks_out_as_guest(
        self,
        client: TestClient,
        token_factory: Callable[..., str],
        shipping_address: dict[str, Any],
    ) -> None:
        """Test that an invalid bearer token falls back to the guest path."""
        response = client.post(
            "/api/v1/checkout",
            json=checkout_body(shipping_address),
            headers={"Authorization": f"Bearer {token_factory(exp_offset=-60)}"},
        )

        assert response.status_code == 201
        assert response.json()["isGuest"] is True

    def test_client_price_is_rejected(self, client: TestClient, shipping_address: dict[str, Any]) -> None:
        """Test that a line carrying a price is refused by the schema."""
        body = checkout_body(shipping_address)
        body["items"][0]["price"] = 1

        response = client.post("/api/v1/checkout", json=body)

        assert response.status_code == 422

    def test_empty_cart(self, client: TestClient, shipping_address: dict[str, Any]) -> None:
        """Test that a cart without usable lines returns EMPTY_CART."""
        response = client.post(
            "/api/v1/checkout",
            json=checkout_body(shipping_address, items=[{"productId": "P1", "variantId": "V1", "quantity": "two"}]),
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["code"] == "EMPTY_CART"
        assert "timestamp" in data

    def test_quantity_over_maximum(
        self,
        client: TestClient,
        razorpay_api,
        shipping_address: dict[str, Any],
    ) -> None:
        """Test that exceeding maximum_in_order is rejected without a gateway call."""
        response = client.post(
            "/api/v1/checkout",
            json=checkout_body(shipping_address, items=[{"productId": "P1", "variantId": "V1", "quantity": 5}]),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_QUANTITY"
        assert razorpay_api.requests == []

    def test_unknown_product(self, client: TestClient, shipping_address: dict[str, Any]) -> None:
        """Test that an unknown product returns 404."""
        response = client.post(
            "/api/v1/checkout",
            json=checkout_body(shipping_address, items=[{"productId": "P404", "variantId": "V1", "quantity": 1}]),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "PRODUCT_NOT_FOUND"

    def test_missing_address(self, client: TestClient) -> None:
        """Test that a missing shipping address returns INVALID_ADDRESS."""
        response = client.post(
            "/api/v1/checkout",
            json={"items": [{"productId": "P1", "variantId": "V1", "quantity": 1}]},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_ADDRESS"

    def test_gateway_down(
        self,
        client: TestClient,
        razorpay_api,
        order_store,
        shipping_address: dict[str, Any],
    ) -> None:
        """Test that a gateway outage returns 502 and stores nothing."""
        razorpay_api.fail_with = httpx.ConnectError

        response = client.post("/api/v1/checkout", json=checkout_body(shipping_address))

        assert response.status_code == 502
        assert response.json()["code"] == "GATEWAY_UNAVAILABLE"
        assert order_store.orders == {}


class TestConfirmPayment:
    """Tests for POST /api/v1/checkout/confirm endpoint."""

    def test_guest_confirmation_flow(
        self,
        client: TestClient,
        order_store,
        test_settings: Settings,
        shipping_address: dict[str, Any],
    ) -> None:
        """Test create then confirm for a guest, then replay the confirmation."""
        created = client.post("/api/v1/checkout", json=checkout_body(shipping_address)).json()

        response = client.post("/api/v1/checkout/confirm", json=confirm_body(test_settings, created))

        assert response.status_code == 200
        assert response.json() == {
            "orderId": created["orderId"],
            "createdAt": created["createdAt"],
            "message": "Payment confirmed",
        }
        stored = order_store.orders[(created["guestId"], created["createdAt"])]
        assert stored["payment_status"] == "paid"
        assert stored["status"] == "order placed"

        replay = client.post("/api/v1/checkout/confirm", json=confirm_body(test_settings, created))

        assert replay.status_code == 200
        assert replay.json()["message"] == "Payment already confirmed"

    def test_authenticated_confirmation(
        self,
        client: TestClient,
        token_factory: Callable[..., str],
        test_settings: Settings,
        shipping_address: dict[str, Any],
    ) -> None:
        """Test create then confirm for a signed-in user."""
        headers = {"Authorization": f"Bearer {token_factory(sub='user-123')}"}
        created = client.post("/api/v1/checkout", json=checkout_body(shipping_address), headers=headers).json()

        response = client.post(
            "/api/v1/checkout/confirm",
            json=confirm_body(test_settings, created),
            headers=headers,
        )

        assert response.status_code == 200

    def test_tampered_signature(
        self,
        client: TestClient,
        test_settings: Settings,
        shipping_address: dict[str, Any],
    ) -> None:
        """Test that a forged signature returns 409 SIGNATURE_MISMATCH."""
        created = client.post("/api/v1/checkout", json=checkout_body(shipping_address)).json()
        body = confirm_body(test_settings, created)
        body["gatewaySignature"] = compute_signature("attacker-secret", created["gatewayOrderId"], "pay_Test0001")

        response = client.post("/api/v1/checkout/confirm", json=body)

        assert response.status_code == 409
        assert response.json()["code"] == "SIGNATURE_MISMATCH"

    def test_missing_fields(self, client: TestClient) -> None:
        """Test that an incomplete confirmation returns INVALID_CONFIRMATION."""
        response = client.post("/api/v1/checkout/confirm", json={"orderId": "abc"})

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "INVALID_CONFIRMATION"
        assert len(data["details"]) == 4

    def test_unknown_order(self, client: TestClient, test_settings: Settings) -> None:
        """Test that a validly signed confirmation for no stored order returns 404."""
        created = {
            "orderId": "missing",
            "createdAt": 1_700_000_000_000,
            "gatewayOrderId": "order_Nowhere",
            "guestId": "guest_abc",
        }

        response = client.post("/api/v1/checkout/confirm", json=confirm_body(test_settings, created))

        assert response.status_code == 404
        assert response.json()["code"] == "ORDER_NOT_FOUND"

"""Pytest configuration and fixtures."""

import copy
import json
import os
import time
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from jwt.algorithms import ECAlgorithm

# Signing key for test access tokens; the public half is the configured JWK
TEST_SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ["SUPABASE_SIGNING_KEY_JWK"] = ECAlgorithm.to_jwk(TEST_SIGNING_KEY.public_key())
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key_id")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_key_secret")

from src.core.config import Settings, get_settings  # noqa: E402
from src.services.order_store import OrderKeyConflictError  # noqa: E402


@pytest.fixture(scope="session")
def test_settings() -> Generator[Settings, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def signing_key() -> ec.EllipticCurvePrivateKey:
    """Provide the private key whose public JWK the app is configured with."""
    return TEST_SIGNING_KEY


@pytest.fixture
def token_factory() -> Callable[..., str]:
    """Provide a function that issues ES256 access tokens signed with the test key."""

    def create_test_token(
        sub: str = "user-123",
        email: str | None = "shopper@example.com",
        role: str | None = "authenticated",
        exp_offset: int = 3600,
        audience: str = "authenticated",
        key: Any = None,
    ) -> str:
        now = int(time.time())
        payload = {
            "sub": sub,
            "email": email,
            "role": role,
            "exp": now + exp_offset,
            "iat": now,
            "aud": audience,
            "iss": "https://test-project.supabase.co/auth/v1",
        }
        return jwt.encode(payload, key or TEST_SIGNING_KEY, algorithm="ES256")

    return create_test_token


class InMemoryCatalog:
    """Catalog reader over plain dicts; records every lookup."""

    def __init__(
        self,
        products: dict[str, dict[str, Any]] | None = None,
        variants: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.products = products or {}
        self.variants = variants or {}
        self.lookups: list[tuple[str, str]] = []

    async def get_product(self, product_id: str) -> dict[str, Any] | None:
        self.lookups.append(("product", product_id))
        product = self.products.get(product_id)
        return copy.deepcopy(product) if product else None

    async def get_variant(self, variant_id: str) -> dict[str, Any] | None:
        self.lookups.append(("variant", variant_id))
        variant = self.variants.get(variant_id)
        return copy.deepcopy(variant) if variant else None


class InMemoryOrderStore:
    """Order store keyed by (user_id, created_at) with conditional updates.

    Set ``collisions`` to make the next N inserts fail with a key conflict.
    """

    def __init__(self) -> None:
        self.orders: dict[tuple[str, int], dict[str, Any]] = {}
        self.collisions = 0
        self.puts: list[dict[str, Any]] = []
        self.updates: list[dict[str, Any]] = []

    async def get_order(self, user_id: str, created_at: int) -> dict[str, Any] | None:
        order = self.orders.get((user_id, created_at))
        return copy.deepcopy(order) if order else None

    async def put_order(self, order: dict[str, Any]) -> dict[str, Any]:
        self.puts.append(copy.deepcopy(order))
        key = (order["user_id"], order["created_at"])
        if self.collisions > 0 or key in self.orders:
            self.collisions = max(self.collisions - 1, 0)
            raise OrderKeyConflictError(*key)
        self.orders[key] = copy.deepcopy(dict(order))
        return copy.deepcopy(dict(order))

    async def update_order(
        self,
        user_id: str,
        created_at: int,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        order = self.orders.get((user_id, created_at))
        if order is None:
            return None
        if any(order.get(column) != value for column, value in (expected or {}).items()):
            return None
        self.updates.append(dict(fields))
        order.update(fields)
        return copy.deepcopy(order)

    async def list_orders_for_user(self, user_id: str) -> list[dict[str, Any]]:
        orders = [o for (owner, _), o in self.orders.items() if owner == user_id]
        return copy.deepcopy(sorted(orders, key=lambda o: o["created_at"], reverse=True))

    async def list_all_orders(self) -> list[dict[str, Any]]:
        return copy.deepcopy(sorted(self.orders.values(), key=lambda o: o["created_at"], reverse=True))


class FakeRazorpayAPI:
    """Request handler standing in for the Razorpay orders API.

    Set ``fail_with`` to an httpx transport error class to make every call
    raise it, or ``create_response`` to override the POST /orders reply.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.orders: dict[str, dict[str, Any]] = {}
        self.create_response: httpx.Response | None = None
        self.fail_with: type[httpx.TransportError] | None = None
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with("Connection refused", request=request)

        if request.method == "POST" and request.url.path.endswith("/orders"):
            if self.create_response is not None:
                return self.create_response
            payload = json.loads(request.content)
            self._counter += 1
            order = {
                "id": f"order_Test{self._counter:06d}",
                "entity": "order",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
            }
            self.orders[order["id"]] = order
            return httpx.Response(200, json=order)

        if request.method == "GET":
            order_id = request.url.path.rsplit("/", 1)[-1]
            if order_id in self.orders:
                return httpx.Response(200, json=self.orders[order_id])
            return httpx.Response(
                400,
                json={"error": {"code": "BAD_REQUEST_ERROR", "description": "The id provided does not exist"}},
            )

        return httpx.Response(404)

    @property
    def create_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Provide a catalog with one product (P1) and two of its variants."""
    return InMemoryCatalog(
        products={
            "P1": {"product_id": "P1", "name": "Cotton Kurta", "image_urls": ["https://cdn.example.com/p1.jpg"]},
            "P2": {"product_id": "P2", "name": "Linen Shirt", "image_urls": []},
        },
        variants={
            "V1": {
                "variant_id": "V1",
                "product_id": "P1",
                "name": "Medium / Indigo",
                "price": 50000,
                "stock": 20,
                "maximum_in_order": 3,
            },
            "V2": {
                "variant_id": "V2",
                "product_id": "P1",
                "name": "Large / Indigo",
                "price": 52500,
                "stock": None,
                "maximum_in_order": None,
            },
            "V3": {
                "variant_id": "V3",
                "product_id": "P2",
                "name": "Small / White",
                "price": 120000,
                "stock": 1,
                "maximum_in_order": None,
            },
        },
    )


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    """Provide an empty in-memory order store."""
    return InMemoryOrderStore()


@pytest.fixture
def razorpay_api() -> FakeRazorpayAPI:
    """Provide a fake Razorpay API."""
    return FakeRazorpayAPI()


@pytest.fixture
def gateway(test_settings: Settings, razorpay_api: FakeRazorpayAPI) -> Any:
    """Provide a Razorpay gateway adapter wired to the fake API."""
    from src.services.payment_gateway import RazorpayGateway

    return RazorpayGateway(settings=test_settings, transport=razorpay_api.transport)


@pytest.fixture
def checkout_service(
    test_settings: Settings,
    catalog: InMemoryCatalog,
    order_store: InMemoryOrderStore,
    gateway: Any,
) -> Any:
    """Provide a CheckoutService over the in-memory fakes."""
    from src.services.checkout_service import CheckoutService

    return CheckoutService(catalog=catalog, store=order_store, gateway=gateway, settings=test_settings)


@pytest.fixture
def shipping_address() -> dict[str, Any]:
    """Provide a complete shipping address in wire (camelCase) form."""
    return {
        "userLabel": "Asha Rao",
        "phoneNumber": "+919876543210",
        "specificAddress": "Flat 4B, Lotus Residency",
        "street": "12th Main Road",
        "area": "Indiranagar",
        "postcode": "560038",
        "city": "Bengaluru",
        "state": "Karnataka",
        "country": "India",
    }


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(
    mock_supabase_client: MagicMock,
    checkout_service: Any,
) -> Generator[TestClient, None, None]:
    """Provide a test client with the checkout service over in-memory fakes.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.
        checkout_service: Checkout service fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.api.deps import get_checkout_service
    from src.main import app

    app.dependency_overrides[get_checkout_service] = lambda: checkout_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

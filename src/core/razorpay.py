"""Razorpay HTTP client configuration."""

import logging

import httpx

from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def check_razorpay_configuration() -> bool:
    """Log whether Razorpay credentials are configured.

    This should be called once at application startup.
    If the keys are missing, checkout creation fails with GATEWAY_UNAVAILABLE
    and confirmation fails with GATEWAY_NOT_CONFIGURED.

    Returns:
        bool: True if both key id and key secret are set.
    """
    settings = get_settings()
    if not settings.is_razorpay_configured:
        logger.warning("Razorpay keys not configured. Checkout will not work.")
        return False

    logger.info("Razorpay configured (test_mode=%s)", settings.is_razorpay_test_mode)
    return True


def create_razorpay_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create a short-lived async client for the Razorpay REST API.

    A new client is created per gateway call so no connection outlives
    the request that needed it. Close it with ``async with``.

    Args:
        settings: Optional settings override.
        transport: Optional transport override (tests use httpx.MockTransport).

    Returns:
        httpx.AsyncClient: Client with base URL, basic auth and timeout set.
    """
    settings = settings or get_settings()
    return httpx.AsyncClient(
        base_url=settings.razorpay_api_base_url,
        auth=(settings.razorpay_key_id, settings.razorpay_key_secret),
        timeout=settings.razorpay_timeout_seconds,
        headers={"Content-Type": "application/json"},
        transport=transport,
    )

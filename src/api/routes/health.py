"""Liveness and readiness probes."""

import time

from fastapi import APIRouter, Response, status

from src.core.config import get_settings
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    """Report that the process is serving requests. Touches no dependency."""
    return HealthResponse(status=HealthStatus.HEALTHY)


async def _database_check() -> CheckResult:
    started = time.perf_counter()
    result = await check_database_connection()
    return CheckResult(
        name="database",
        healthy=result["healthy"],
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        error=result.get("error"),
    )


def _payment_gateway_check() -> CheckResult:
    # Credentials only; Razorpay is not called
    configured = get_settings().is_razorpay_configured
    return CheckResult(
        name="payment_gateway",
        healthy=configured,
        error=None if configured else "Razorpay keys not configured",
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Orders table unreachable or Razorpay keys missing"}},
    summary="Readiness check",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check the orders table and Razorpay credentials; 503 if either fails."""
    checks = [await _database_check(), _payment_gateway_check()]

    if all(check.healthy for check in checks):
        return ReadinessResponse(status=HealthStatus.HEALTHY, checks=checks)

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status=HealthStatus.UNHEALTHY, checks=checks)

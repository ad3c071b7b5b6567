"""Request latency logging middleware for performance monitoring."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

# Gateway calls sit on these paths; give them more room before flagging
GATEWAY_PATH_PREFIXES = ("/api/v1/checkout",)
GATEWAY_SLOW_REQUEST_THRESHOLD_MS = 2500

HEALTH_CHECK_PATHS = ("/health", "/health/ready")


def slow_threshold_ms(path: str) -> float:
    """Latency above which a request on ``path`` is logged as slow."""
    if path.startswith(GATEWAY_PATH_PREFIXES):
        return GATEWAY_SLOW_REQUEST_THRESHOLD_MS
    return SLOW_REQUEST_THRESHOLD_MS


def log_level_for(path: str, status_code: int, latency_ms: float, error_occurred: bool) -> int:
    """Pick the log level for a finished request."""
    if path in HEALTH_CHECK_PATHS:
        return logging.DEBUG
    if error_occurred or status_code >= 500 or latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
        return logging.ERROR
    if status_code >= 400 or latency_ms > slow_threshold_ms(path):
        return logging.WARNING
    return logging.INFO


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Middleware to log request latency.

    Logs timing information for every request, with elevated log levels
    for slow or failed requests. Health checks log at debug level.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path

    response = None
    error_occurred = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        error_occurred = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        level = log_level_for(path, status_code, latency_ms, error_occurred)

        prefix = "SLOW REQUEST: " if latency_ms > slow_threshold_ms(path) and path not in HEALTH_CHECK_PATHS else ""
        logger.log(
            level,
            "%s%s %s - %s - %.2fms",
            prefix,
            method,
            path,
            status_code,
            latency_ms,
            extra={"status_code": status_code, "latency_ms": round(latency_ms, 2)},
        )

"""Storefront checkout API application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import error_handler_middleware
from src.api.middleware.latency_logging import latency_logging_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import health
from src.api.routes.checkout import orders_router, router as checkout_router
from src.core.config import get_settings
from src.core.razorpay import check_razorpay_configuration

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info("Starting %s (%s)", settings.app_name, settings.app_env)
    check_razorpay_configuration()
    yield
    logger.info("Stopped %s", settings.app_name)


def create_app() -> FastAPI:
    """Build the app: CORS, middlewares, health probes and the /api/v1 routes."""
    settings = get_settings()
    docs_enabled = settings.debug

    app = FastAPI(
        title="Storefront Checkout API",
        description="Checkout pricing, Razorpay payment settlement and order retrieval",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Last added runs first: size limit, then latency logging, then error rendering
    for dispatch in (error_handler_middleware, latency_logging_middleware, request_size_limit_middleware):
        app.add_middleware(BaseHTTPMiddleware, dispatch=dispatch)

    app.include_router(health.router)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(checkout_router)
    api_v1.include_router(orders_router)
    app.include_router(api_v1)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("src.main:app", host=settings.host, port=settings.port, reload=settings.debug)

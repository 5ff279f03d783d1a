"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
lifespan) so tests and the ASGI entrypoint build the app the same way.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from tiny_faucet.api.dependencies import close_dependencies
from tiny_faucet.api.routes import faucet_router, health_router, home_router
from tiny_faucet.core.config import settings
from tiny_faucet.core.exception_handlers import setup_exception_handlers
from tiny_faucet.core.logging import configure_logging
from tiny_faucet.core.middleware import request_id_middleware
from tiny_faucet.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        extra={
            "env": settings.app_env,
            "quota_backend": settings.quota_store.backend,
            "rate_limit_max_requests": settings.rate_limit.max_requests,
            "rate_limit_window_ms": settings.rate_limit.window_ms,
            "rpc_url": settings.ledger.rpc_url,
        },
    )
    try:
        yield
    finally:
        await close_dependencies()
        logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Tempo Tiny Faucet",
        description=(
            "Faucet for Tempo testnet stablecoins. Sends a fixed tier of a "
            "supported token to an address, limited per address to a fixed "
            "number of requests per window."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(faucet_router, prefix="/api")
    app.include_router(health_router)
    app.include_router(home_router)

    # OpenAPI customizations (tags, error envelope, rate-limit headers)
    apply_openapi_customizations(app)

    return app

from __future__ import annotations

from tiny_faucet.api.routes.faucet import router as faucet_router
from tiny_faucet.api.routes.health import router as health_router
from tiny_faucet.api.routes.home import router as home_router

__all__ = ["faucet_router", "health_router", "home_router"]

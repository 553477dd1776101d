"""FastAPI application factory with error mapping and WebSocket hub."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pricefeed.api.rate_limit import RateLimiter
from pricefeed.api.routes import prices, ws
from pricefeed.api.routes.ws import PriceHub
from pricefeed.exceptions import FetchError, FetchTimeoutError, ValidationError

log = structlog.get_logger(__name__)


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _fetch_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = 504 if isinstance(exc, FetchTimeoutError) else 502
    log.warning("price_unavailable", path=request.url.path, error=str(exc), status=status)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(
    lifespan: Any = None,
    hub: PriceHub | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the price feed API.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
                  Used by main.py to inject component lifecycle.
        hub: WebSocket hub; a fresh one is created when omitted.
        rate_limiter: Per-client limiter for the rate-limited endpoints.
                      None disables rate limiting.

    Returns:
        Configured FastAPI application. The caller must set
        ``app.state.service`` before serving requests.
    """
    app = FastAPI(title="Price Feed", lifespan=lifespan)

    app.state.hub = hub or PriceHub()
    app.state.rate_limiter = rate_limiter

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(FetchError, _fetch_error_handler)

    app.include_router(prices.router)
    app.include_router(ws.router)

    return app

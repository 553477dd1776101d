"""HTTP and WebSocket surface (FastAPI)."""

from pricefeed.api.app import create_app
from pricefeed.api.rate_limit import RateLimiter
from pricefeed.api.routes.ws import PriceHub

__all__ = ["PriceHub", "RateLimiter", "create_app"]

"""Per-client fixed-window rate limiting for the HTTP API."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from fastapi import HTTPException, Request

log = structlog.get_logger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Allows `points` requests per `window` seconds for each client key.

    consume() has no await points, so it is atomic on the event loop.
    """

    def __init__(
        self,
        points: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._points = points
        self._window = window
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def consume(self, key: str) -> bool:
        """Spend one point for `key`. Returns False when the budget is exhausted."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self._window:
            window = _Window(started_at=now)
            self._windows[key] = window
            self._evict(now)
        if window.count >= self._points:
            return False
        window.count += 1
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until `key` gets a fresh window."""
        window = self._windows.get(key)
        if window is None:
            return 0.0
        return max(0.0, self._window - (self._clock() - window.started_at))

    def _evict(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self._window]
        for key in expired:
            del self._windows[key]


async def rate_limit(request: Request) -> None:
    """FastAPI dependency: 429 when the client's budget is spent."""
    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    key = request.client.host if request.client else "unknown"
    if not limiter.consume(key):
        log.warning("rate_limited", client=key, path=request.url.path)
        raise HTTPException(
            status_code=429,
            detail="Too Many Requests",
            headers={"Retry-After": str(int(limiter.retry_after(key)) + 1)},
        )

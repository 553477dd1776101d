"""Authoritative per-asset price cache with append-only history.

Each asset owns its own asyncio.Lock, so a write to one asset never waits on
another. The store never holds a lock across I/O: callers fetch before
calling record() and publish after it returns.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field

from pricefeed.logging import get_logger
from pricefeed.models import PricePoint

logger = get_logger(__name__)


@dataclass
class _AssetState:
    history: deque[PricePoint]
    current: PricePoint | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class PriceStore:
    """Shared in-memory price store, partitioned by asset.

    Writers: RefreshCoordinator (one call per fetched price).
    Readers: PriceFeedService, YieldCalculator, the WebSocket broadcaster.

    Args:
        history_limit: Maximum points kept per asset. None or 0 keeps every
            point (unbounded append).
    """

    def __init__(self, history_limit: int | None = None) -> None:
        self._history_limit = history_limit or None
        self._states: dict[str, _AssetState] = {}

    def _state(self, asset: str) -> _AssetState:
        # No await between lookup and insert, so this cannot race on the loop.
        state = self._states.get(asset)
        if state is None:
            state = _AssetState(history=deque(maxlen=self._history_limit))
            self._states[asset] = state
        return state

    async def record(self, asset: str, point: PricePoint) -> tuple[PricePoint, bool]:
        """Store a price if it is strictly newer than the current one.

        Returns:
            (stored point, True) when the point became current, or
            (existing current point, False) when it was stale and dropped.
        """
        state = self._state(asset)
        async with state.lock:
            current = state.current
            if current is not None and point.observed_at <= current.observed_at:
                logger.debug(
                    "stale_price_dropped",
                    asset=asset,
                    observed_at=point.observed_at,
                    current_observed_at=current.observed_at,
                )
                return current, False
            state.current = point
            state.history.append(point)
            return point, True

    async def current(self, asset: str) -> PricePoint | None:
        """Return the current point for an asset, or None if never recorded."""
        state = self._states.get(asset)
        if state is None:
            return None
        async with state.lock:
            return state.current

    async def history(self, asset: str) -> tuple[PricePoint, ...]:
        """Return a snapshot of the recorded points in recording order."""
        state = self._states.get(asset)
        if state is None:
            return ()
        async with state.lock:
            return tuple(state.history)

    def assets(self) -> list[str]:
        """Assets that have at least one recorded price."""
        return [a for a, s in self._states.items() if s.current is not None]

    def __contains__(self, asset: str) -> bool:
        state = self._states.get(asset)
        return state is not None and state.current is not None

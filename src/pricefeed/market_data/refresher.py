"""Periodic batch refresh of every supported asset.

Runs as an asyncio background task in place of a once-a-minute cron job.
The first cycle runs immediately on start so readers have data right away.
"""

import asyncio
from collections.abc import Sequence

from pricefeed.logging import get_logger
from pricefeed.market_data.refresh import RefreshCoordinator
from pricefeed.models import RefreshResult

logger = get_logger(__name__)


class PriceRefresher:
    """Runs RefreshCoordinator.refresh_all on a fixed interval."""

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        assets: Sequence[str],
        poll_interval: float = 60.0,
    ) -> None:
        self._coordinator = coordinator
        self._assets = tuple(assets)
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycles(self) -> int:
        """Number of completed refresh cycles."""
        return self._cycles

    async def start(self) -> None:
        """Begin refreshing in the background."""
        if self._running:
            logger.warning("price_refresher_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._refresh_loop(), name="price-refresher")
        logger.info(
            "price_refresher_started",
            poll_interval=self._poll_interval,
            assets=list(self._assets),
        )

    async def stop(self) -> None:
        """Stop the refresher gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_refresher_stopped", cycles=self._cycles)

    async def run_once(self) -> dict[str, RefreshResult]:
        """Execute a single batch refresh of all assets."""
        results = await self._coordinator.refresh_all(self._assets)
        self._cycles += 1
        logger.info(
            "price_update_cron",
            cycle=self._cycles,
            ok=[a for a, r in results.items() if r.ok],
            failed=[a for a, r in results.items() if not r.ok],
        )
        return results

    async def _refresh_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_refresher_cycle_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._poll_interval)

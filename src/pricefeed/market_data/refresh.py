"""Refresh coordination: fetch -> record -> evaluate -> broadcast.

Effects of one refresh, in order:
  1. FETCH: source.fetch_price under a bounded timeout (no lock held)
  2. RECORD: PriceStore.record with the fetch's observation time
  3. EVALUATE: only when the record was newer; log alert_triggered on a hit
  4. SNAPSHOT: best-effort write of the newer point to the snapshot cache
  5. PUBLISH: the store's authoritative current point (no lock held)

A failed fetch stops at step 1: nothing is recorded, evaluated or published.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from pricefeed.exceptions import FetchError, FetchTimeoutError, ValidationError
from pricefeed.logging import get_logger
from pricefeed.market_data.alerts import AlertEvaluator
from pricefeed.market_data.price_store import PriceStore
from pricefeed.models import AlertEvent, PricePoint, RefreshResult
from pricefeed.sources.client import PriceSource

if TYPE_CHECKING:
    from pricefeed.broadcast import PriceBroadcaster
    from pricefeed.data.snapshots import PriceSnapshotStore

logger = get_logger(__name__)


class RefreshCoordinator:
    """Orchestrates a price update for one asset or a batch of assets.

    Args:
        source: External price provider.
        store: Authoritative price store.
        evaluator: Threshold alert evaluator.
        broadcaster: Fire-and-forget publisher for price updates.
        fetch_timeout: Seconds before a fetch fails with FetchTimeoutError.
        snapshots: Optional best-effort snapshot cache.
        clock: Observation-time source, injectable for tests.
    """

    def __init__(
        self,
        source: PriceSource,
        store: PriceStore,
        evaluator: AlertEvaluator,
        broadcaster: PriceBroadcaster,
        fetch_timeout: float = 10.0,
        snapshots: PriceSnapshotStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._store = store
        self._evaluator = evaluator
        self._broadcaster = broadcaster
        self._fetch_timeout = fetch_timeout
        self._snapshots = snapshots
        self._clock = clock
        self._last_alert: AlertEvent | None = None

    def set_snapshots(self, snapshots: PriceSnapshotStore | None) -> None:
        """Attach or detach the snapshot cache (e.g. when it fails to open)."""
        self._snapshots = snapshots

    @property
    def last_alert(self) -> AlertEvent | None:
        """Most recent alert emitted by this coordinator."""
        return self._last_alert

    async def refresh(self, asset: str) -> PricePoint:
        """Fetch and store the latest price for one asset.

        Returns:
            The store's current point after the update. When a concurrent
            refresh already stored a newer point, that point is returned.

        Raises:
            FetchError: The source failed or returned an unusable value.
            FetchTimeoutError: The source did not answer within fetch_timeout.
        """
        with structlog.contextvars.bound_contextvars(asset=asset):
            value = await self._fetch(asset)
            try:
                point = PricePoint(value=value, observed_at=self._clock())
            except ValidationError as e:
                raise FetchError(asset, f"unusable price: {e}") from e

            current, is_newer = await self._store.record(asset, point)

            if is_newer:
                await self._check_alert(asset, current)
                if self._snapshots is not None:
                    await self._snapshots.save(asset, current)
                logger.debug("price_refreshed", price=str(current.value))

            self._broadcaster.publish(asset, current)
            return current

    async def refresh_all(self, assets: Iterable[str]) -> dict[str, RefreshResult]:
        """Refresh every asset concurrently with per-asset error isolation.

        Never raises for a single asset's failure; the failure is reported
        in that asset's RefreshResult.
        """
        asset_list = list(assets)
        outcomes = await asyncio.gather(
            *(self.refresh(asset) for asset in asset_list),
            return_exceptions=True,
        )

        results: dict[str, RefreshResult] = {}
        for asset, outcome in zip(asset_list, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "price_refresh_failed",
                    asset=asset,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                results[asset] = RefreshResult(asset=asset, error=outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[asset] = RefreshResult(asset=asset, point=outcome)

        logger.info(
            "price_refresh_batch",
            ok=sum(1 for r in results.values() if r.ok),
            failed=sum(1 for r in results.values() if not r.ok),
        )
        return results

    async def _fetch(self, asset: str) -> Decimal:
        try:
            return await asyncio.wait_for(
                self._source.fetch_price(asset), timeout=self._fetch_timeout
            )
        except TimeoutError as e:
            raise FetchTimeoutError(
                asset, f"no response within {self._fetch_timeout}s"
            ) from e
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(asset, f"{type(e).__name__}: {e}") from e

    async def _check_alert(self, asset: str, point: PricePoint) -> None:
        triggered, subscription = await self._evaluator.evaluate(asset, point)
        if not triggered or subscription is None:
            return
        self._last_alert = AlertEvent(
            asset=asset,
            value=point.value,
            threshold=subscription.threshold,
            observed_at=point.observed_at,
        )
        logger.info(
            "alert_triggered",
            price=str(point.value),
            threshold=str(subscription.threshold),
        )

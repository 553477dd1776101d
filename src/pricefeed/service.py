"""Read API exposed to the HTTP layer.

Every method validates the asset against the supported set before touching
any shared state. Reads are cache-first: only a cold cache combined with a
failed fetch surfaces an error to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING

from pricefeed.exceptions import ValidationError
from pricefeed.hashing import hash_price
from pricefeed.logging import get_logger
from pricefeed.market_data.alerts import AlertRegistry
from pricefeed.market_data.price_store import PriceStore
from pricefeed.market_data.refresh import RefreshCoordinator
from pricefeed.market_data.yield_calculator import YieldCalculator
from pricefeed.models import AlertSubscription, PricePoint, RefreshResult, validate_asset

if TYPE_CHECKING:
    from pricefeed.data.snapshots import PriceSnapshotStore

logger = get_logger(__name__)


class PriceFeedService:
    """Facade over the price core for HTTP handlers and the refresher.

    Args:
        supported_assets: The fixed set of assets this service accepts.
        store: Authoritative price store.
        registry: Alert subscriptions.
        yield_calculator: Derived yield rate.
        coordinator: Refresh orchestration (fetch/record/evaluate/publish).
    """

    def __init__(
        self,
        supported_assets: Sequence[str],
        store: PriceStore,
        registry: AlertRegistry,
        yield_calculator: YieldCalculator,
        coordinator: RefreshCoordinator,
    ) -> None:
        self._assets = tuple(supported_assets)
        self._store = store
        self._registry = registry
        self._yield = yield_calculator
        self._coordinator = coordinator

    @property
    def supported_assets(self) -> tuple[str, ...]:
        return self._assets

    def validate(self, asset: str | None) -> str:
        """Return the normalised asset id or raise ValidationError."""
        return validate_asset(asset, self._assets)

    async def get_current(self, asset: str) -> PricePoint:
        """Return the cached price, refreshing on a cache miss.

        Raises:
            ValidationError: Unsupported asset.
            FetchError: Cache miss and the fetch failed.
        """
        asset = self.validate(asset)
        point = await self._store.current(asset)
        if point is not None:
            return point
        logger.info("price_cache_miss", asset=asset)
        return await self._coordinator.refresh(asset)

    async def get_cached(self, asset: str) -> PricePoint | None:
        """Return the cached price without ever fetching."""
        asset = self.validate(asset)
        return await self._store.current(asset)

    async def get_history(self, asset: str) -> tuple[PricePoint, ...]:
        asset = self.validate(asset)
        return await self._store.history(asset)

    async def subscribe(self, asset: str, threshold: Decimal | str | int | None) -> AlertSubscription:
        """Register a threshold alert. Replaces any existing one for the asset."""
        asset = self.validate(asset)
        if threshold is None or threshold == "":
            raise ValidationError("threshold is required")
        return await self._registry.subscribe(asset, threshold)

    async def unsubscribe(self, asset: str) -> bool:
        asset = self.validate(asset)
        return await self._registry.unsubscribe(asset)

    async def get_yield(self, asset: str) -> Decimal:
        asset = self.validate(asset)
        return await self._yield.compute(asset)

    async def get_yields(self) -> dict[str, Decimal]:
        """Yield rate for every supported asset (0 for assets without a price)."""
        return {asset: await self._yield.compute(asset) for asset in self._assets}

    async def refresh(self, asset: str) -> PricePoint:
        asset = self.validate(asset)
        return await self._coordinator.refresh(asset)

    async def refresh_all(self) -> dict[str, RefreshResult]:
        """Refresh all supported assets concurrently, isolating failures."""
        return await self._coordinator.refresh_all(self._assets)

    def hash_price(self, asset: str, price: str | None) -> str:
        """Deterministic digest of (asset, price string)."""
        asset = self.validate(asset)
        if price is None:
            raise ValidationError("price is required")
        digest = hash_price(asset, str(price))
        logger.info("price_hashed", asset=asset, hash=digest)
        return digest

    async def warm_from_snapshots(self, snapshots: PriceSnapshotStore) -> int:
        """Seed the store from the snapshot cache. Returns the number loaded.

        Unsupported assets in the cache are ignored; failures are logged and
        leave the store cold.
        """
        try:
            cached = await snapshots.load_all()
        except Exception:
            logger.warning("snapshot_warm_failed", exc_info=True)
            return 0

        loaded = 0
        for asset, point in cached.items():
            if asset not in self._assets:
                continue
            _, is_newer = await self._store.record(asset, point)
            loaded += int(is_newer)
        logger.info("snapshot_warm_complete", loaded=loaded)
        return loaded

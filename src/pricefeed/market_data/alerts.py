"""Threshold alert subscriptions and their evaluation.

AlertRegistry owns the subscriptions (one per asset, last writer wins).
AlertEvaluator is a side-effect-free check of a price against the registry;
logging and broadcasting the result is the caller's job.
"""

import asyncio
from decimal import Decimal

from pricefeed.exceptions import ValidationError
from pricefeed.logging import get_logger
from pricefeed.models import AlertSubscription, PricePoint, to_decimal

logger = get_logger(__name__)


class AlertRegistry:
    """Per-asset threshold subscriptions guarded by a single lock.

    Writes are rare and reads are a dict lookup, so one lock for the whole
    map is enough.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, AlertSubscription] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, asset: str, threshold: Decimal | str | int) -> AlertSubscription:
        """Register (or replace) the threshold alert for an asset.

        Raises:
            ValidationError: If the threshold is missing or not positive.
        """
        value = to_decimal(threshold, "threshold")
        if value <= 0:
            raise ValidationError(f"threshold must be positive, got {value}")

        subscription = AlertSubscription(asset=asset, threshold=value)
        async with self._lock:
            previous = self._subscriptions.get(asset)
            self._subscriptions[asset] = subscription

        logger.info(
            "alert_subscribed",
            asset=asset,
            threshold=str(value),
            replaced=str(previous.threshold) if previous else None,
        )
        return subscription

    async def unsubscribe(self, asset: str) -> bool:
        """Remove the subscription for an asset. Returns whether one existed."""
        async with self._lock:
            removed = self._subscriptions.pop(asset, None)
        if removed is not None:
            logger.info("alert_unsubscribed", asset=asset)
        return removed is not None

    async def get(self, asset: str) -> AlertSubscription | None:
        """Return the active subscription for an asset, or None."""
        async with self._lock:
            return self._subscriptions.get(asset)

    async def all(self) -> dict[str, AlertSubscription]:
        """Snapshot of all active subscriptions."""
        async with self._lock:
            return dict(self._subscriptions)


class AlertEvaluator:
    """Checks a price against the asset's registered threshold."""

    def __init__(self, registry: AlertRegistry) -> None:
        self._registry = registry

    async def evaluate(
        self, asset: str, point: PricePoint
    ) -> tuple[bool, AlertSubscription | None]:
        """Return (triggered, subscription).

        Triggers only when the price is strictly greater than the threshold;
        a price equal to the threshold does not trigger.
        """
        subscription = await self._registry.get(asset)
        if subscription is None:
            return False, None
        return point.value > subscription.threshold, subscription

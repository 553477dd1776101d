"""Tests for RefreshCoordinator: effect ordering, failures, batch isolation.

All tests use a mocked PriceSource and broadcaster.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricefeed.exceptions import FetchError, FetchTimeoutError
from pricefeed.market_data.alerts import AlertEvaluator, AlertRegistry
from pricefeed.market_data.price_store import PriceStore
from pricefeed.market_data.refresh import RefreshCoordinator
from pricefeed.models import AlertEvent, PricePoint


class TestRefresh:
    """Single-asset refresh."""

    @pytest.mark.asyncio
    async def test_refresh_records_and_publishes(
        self,
        coordinator: RefreshCoordinator,
        store: PriceStore,
        mock_broadcaster: MagicMock,
        clock,
    ) -> None:
        point = await coordinator.refresh("ethereum")
        assert point == PricePoint(Decimal("1800.50"), clock.now)
        assert await store.current("ethereum") == point
        mock_broadcaster.publish.assert_called_once_with("ethereum", point)

    @pytest.mark.asyncio
    async def test_fetch_failure_has_no_effects(
        self,
        coordinator: RefreshCoordinator,
        store: PriceStore,
        mock_source: AsyncMock,
        mock_broadcaster: MagicMock,
    ) -> None:
        mock_source.fetch_price.side_effect = FetchError("ethereum", "boom")
        with pytest.raises(FetchError):
            await coordinator.refresh("ethereum")
        assert await store.current("ethereum") is None
        mock_broadcaster.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_source_error_wrapped(
        self, coordinator: RefreshCoordinator, mock_source: AsyncMock
    ) -> None:
        mock_source.fetch_price.side_effect = ConnectionResetError("reset by peer")
        with pytest.raises(FetchError) as exc_info:
            await coordinator.refresh("ethereum")
        assert exc_info.value.asset == "ethereum"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_non_positive_price_is_fetch_error(
        self, coordinator: RefreshCoordinator, mock_source: AsyncMock, store: PriceStore
    ) -> None:
        mock_source.fetch_price.side_effect = None
        mock_source.fetch_price.return_value = Decimal("0")
        with pytest.raises(FetchError):
            await coordinator.refresh("ethereum")
        assert await store.current("ethereum") is None

    @pytest.mark.asyncio
    async def test_fetch_timeout(
        self,
        store: PriceStore,
        evaluator: AlertEvaluator,
        mock_broadcaster: MagicMock,
    ) -> None:
        async def hang(asset: str) -> Decimal:
            await asyncio.sleep(10)
            return Decimal("1")

        source = AsyncMock()
        source.fetch_price = hang
        coordinator = RefreshCoordinator(
            source, store, evaluator, mock_broadcaster, fetch_timeout=0.05
        )
        with pytest.raises(FetchTimeoutError):
            await coordinator.refresh("ethereum")
        assert await store.current("ethereum") is None
        mock_broadcaster.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_is_a_fetch_error(self) -> None:
        assert issubclass(FetchTimeoutError, FetchError)

    @pytest.mark.asyncio
    async def test_stale_result_publishes_authoritative_point(
        self,
        coordinator: RefreshCoordinator,
        store: PriceStore,
        mock_broadcaster: MagicMock,
        clock,
    ) -> None:
        newer = PricePoint(Decimal("1900"), clock.now + 100)
        await store.record("ethereum", newer)

        result = await coordinator.refresh("ethereum")

        assert result == newer
        mock_broadcaster.publish.assert_called_once_with("ethereum", newer)
        assert await store.history("ethereum") == (newer,)


class TestRefreshAlerts:
    """Alert evaluation happens exactly once per newer price."""

    @pytest.mark.asyncio
    async def test_alert_triggered_on_newer_price(
        self,
        coordinator: RefreshCoordinator,
        registry: AlertRegistry,
        mock_source: AsyncMock,
        clock,
    ) -> None:
        await registry.subscribe("ethereum", Decimal("2000"))
        mock_source.fetch_price.side_effect = None
        mock_source.fetch_price.return_value = Decimal("2100")

        await coordinator.refresh("ethereum")

        assert coordinator.last_alert == AlertEvent(
            asset="ethereum",
            value=Decimal("2100"),
            threshold=Decimal("2000"),
            observed_at=clock.now,
        )

    @pytest.mark.asyncio
    async def test_no_alert_at_threshold(
        self,
        coordinator: RefreshCoordinator,
        registry: AlertRegistry,
        mock_source: AsyncMock,
    ) -> None:
        await registry.subscribe("ethereum", Decimal("2000"))
        mock_source.fetch_price.side_effect = None
        mock_source.fetch_price.return_value = Decimal("2000")

        await coordinator.refresh("ethereum")

        assert coordinator.last_alert is None

    @pytest.mark.asyncio
    async def test_stale_record_skips_evaluation(
        self,
        store: PriceStore,
        mock_source: AsyncMock,
        mock_broadcaster: MagicMock,
        clock,
    ) -> None:
        evaluator = MagicMock()
        evaluator.evaluate = AsyncMock(return_value=(False, None))
        coordinator = RefreshCoordinator(
            mock_source, store, evaluator, mock_broadcaster, clock=clock
        )

        await coordinator.refresh("ethereum")
        assert evaluator.evaluate.await_count == 1

        # Same clock reading -> equal timestamp -> stale
        await coordinator.refresh("ethereum")
        assert evaluator.evaluate.await_count == 1
        assert mock_broadcaster.publish.call_count == 2

    @pytest.mark.asyncio
    async def test_every_newer_price_above_threshold_realerts(
        self,
        coordinator: RefreshCoordinator,
        registry: AlertRegistry,
        mock_source: AsyncMock,
        clock,
    ) -> None:
        await registry.subscribe("ethereum", Decimal("1000"))
        await coordinator.refresh("ethereum")
        first = coordinator.last_alert
        clock.advance()
        await coordinator.refresh("ethereum")
        second = coordinator.last_alert
        assert first is not None and second is not None
        assert second.observed_at > first.observed_at


class TestRefreshSnapshots:
    """Best-effort snapshot cache writes."""

    @pytest.mark.asyncio
    async def test_snapshot_saved_only_for_newer(
        self,
        store: PriceStore,
        evaluator: AlertEvaluator,
        mock_source: AsyncMock,
        mock_broadcaster: MagicMock,
        clock,
    ) -> None:
        snapshots = MagicMock()
        snapshots.save = AsyncMock(return_value=True)
        coordinator = RefreshCoordinator(
            mock_source, store, evaluator, mock_broadcaster, snapshots=snapshots, clock=clock
        )

        point = await coordinator.refresh("ethereum")
        await coordinator.refresh("ethereum")  # stale: same timestamp

        snapshots.save.assert_awaited_once_with("ethereum", point)

    @pytest.mark.asyncio
    async def test_set_snapshots_detaches_cache(
        self,
        store: PriceStore,
        evaluator: AlertEvaluator,
        mock_source: AsyncMock,
        mock_broadcaster: MagicMock,
    ) -> None:
        snapshots = MagicMock()
        snapshots.save = AsyncMock(return_value=True)
        coordinator = RefreshCoordinator(
            mock_source, store, evaluator, mock_broadcaster, snapshots=snapshots
        )
        coordinator.set_snapshots(None)
        await coordinator.refresh("ethereum")
        snapshots.save.assert_not_awaited()


class TestRefreshAll:
    """Batch refresh isolates per-asset failures."""

    @pytest.mark.asyncio
    async def test_all_succeed(self, coordinator: RefreshCoordinator) -> None:
        results = await coordinator.refresh_all(["ethereum", "bitcoin"])
        assert set(results) == {"ethereum", "bitcoin"}
        assert all(r.ok for r in results.values())
        assert results["bitcoin"].point is not None
        assert results["bitcoin"].point.value == Decimal("42000")

    @pytest.mark.asyncio
    async def test_one_failure_isolated_and_prior_price_kept(
        self,
        coordinator: RefreshCoordinator,
        store: PriceStore,
        mock_source: AsyncMock,
        clock,
    ) -> None:
        await coordinator.refresh("ethereum")
        prior = await store.current("ethereum")
        clock.advance()

        async def fetch(asset: str) -> Decimal:
            if asset == "ethereum":
                raise FetchError(asset, "source down")
            return Decimal("43000")

        mock_source.fetch_price.side_effect = fetch

        results = await coordinator.refresh_all(["ethereum", "bitcoin"])

        assert not results["ethereum"].ok
        assert isinstance(results["ethereum"].error, FetchError)
        assert results["bitcoin"].ok
        assert results["bitcoin"].point is not None
        assert results["bitcoin"].point.value == Decimal("43000")
        assert await store.current("ethereum") == prior

    @pytest.mark.asyncio
    async def test_stuck_asset_does_not_block_others(
        self,
        store: PriceStore,
        evaluator: AlertEvaluator,
        mock_broadcaster: MagicMock,
    ) -> None:
        async def fetch(asset: str) -> Decimal:
            if asset == "ethereum":
                await asyncio.sleep(10)
            return Decimal("42000")

        source = AsyncMock()
        source.fetch_price = fetch
        coordinator = RefreshCoordinator(
            source, store, evaluator, mock_broadcaster, fetch_timeout=0.1
        )

        results = await asyncio.wait_for(
            coordinator.refresh_all(["ethereum", "bitcoin"]), timeout=2.0
        )

        assert isinstance(results["ethereum"].error, FetchTimeoutError)
        assert results["bitcoin"].ok

    @pytest.mark.asyncio
    async def test_empty_batch(self, coordinator: RefreshCoordinator) -> None:
        assert await coordinator.refresh_all([]) == {}

"""Shared test fixtures for the price feed service."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricefeed.config import AppSettings, FeedSettings
from pricefeed.market_data.alerts import AlertEvaluator, AlertRegistry
from pricefeed.market_data.price_store import PriceStore
from pricefeed.market_data.refresh import RefreshCoordinator
from pricefeed.market_data.yield_calculator import YieldCalculator
from pricefeed.service import PriceFeedService

ASSETS = ("ethereum", "bitcoin")


class FakeClock:
    """Manually advanced clock for deterministic observation times."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (no cache, fast polling)."""
    return AppSettings(
        log_level="DEBUG",
        feed=FeedSettings(
            supported_assets=ASSETS,
            poll_interval=0.05,
            fetch_timeout=0.5,
            cache_enabled=False,
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> PriceStore:
    return PriceStore()


@pytest.fixture
def registry() -> AlertRegistry:
    return AlertRegistry()


@pytest.fixture
def evaluator(registry: AlertRegistry) -> AlertEvaluator:
    return AlertEvaluator(registry)


@pytest.fixture
def mock_source() -> AsyncMock:
    """Mock PriceSource returning fixed prices per asset."""
    prices = {"ethereum": Decimal("1800.50"), "bitcoin": Decimal("42000")}
    source = AsyncMock()
    source.fetch_price = AsyncMock(side_effect=lambda asset: prices[asset])
    return source


@pytest.fixture
def mock_broadcaster() -> MagicMock:
    """Broadcaster stand-in; publish is synchronous fire-and-forget."""
    broadcaster = MagicMock()
    broadcaster.publish = MagicMock()
    return broadcaster


@pytest.fixture
def coordinator(
    mock_source: AsyncMock,
    store: PriceStore,
    evaluator: AlertEvaluator,
    mock_broadcaster: MagicMock,
    clock: FakeClock,
) -> RefreshCoordinator:
    return RefreshCoordinator(
        source=mock_source,
        store=store,
        evaluator=evaluator,
        broadcaster=mock_broadcaster,
        fetch_timeout=0.5,
        clock=clock,
    )


@pytest.fixture
def service(
    store: PriceStore,
    registry: AlertRegistry,
    coordinator: RefreshCoordinator,
) -> PriceFeedService:
    return PriceFeedService(
        supported_assets=ASSETS,
        store=store,
        registry=registry,
        yield_calculator=YieldCalculator(store),
        coordinator=coordinator,
    )

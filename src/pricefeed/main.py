"""Entry point for the price feed service.

Wires all components together and serves the FastAPI app with uvicorn. The
refresher, broadcaster and API share a single asyncio event loop; FastAPI's
lifespan context manager owns component startup and shutdown.

Component wiring order (in _build_components):
1. PriceSource (CoinGecko or ccxt exchange)
2. PriceStore (per-asset cache + history)
3. AlertRegistry / AlertEvaluator
4. YieldCalculator
5. PriceHub + PriceBroadcaster (WebSocket fan-out)
6. PriceDatabase + PriceSnapshotStore (optional best-effort cache)
7. RefreshCoordinator
8. PriceFeedService (read API)
9. PriceRefresher (periodic batch refresh)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from pricefeed.api import PriceHub, RateLimiter, create_app
from pricefeed.broadcast import PriceBroadcaster
from pricefeed.config import AppSettings
from pricefeed.data import PriceDatabase, PriceSnapshotStore
from pricefeed.logging import get_logger, setup_logging
from pricefeed.market_data import (
    AlertEvaluator,
    AlertRegistry,
    PriceRefresher,
    PriceStore,
    RefreshCoordinator,
    YieldCalculator,
)
from pricefeed.service import PriceFeedService
from pricefeed.sources import create_price_source


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the full dependency graph from settings.

    Nothing is connected or started here; that happens in the lifespan.
    """
    feed = settings.feed

    source = create_price_source(settings)
    store = PriceStore(history_limit=feed.history_limit)
    registry = AlertRegistry()
    evaluator = AlertEvaluator(registry)
    yield_calculator = YieldCalculator(store)

    hub = PriceHub()
    broadcaster = PriceBroadcaster(hub, maxsize=feed.broadcast_queue_size)

    database: PriceDatabase | None = None
    snapshots: PriceSnapshotStore | None = None
    if feed.cache_enabled:
        database = PriceDatabase(feed.cache_db_path)
        snapshots = PriceSnapshotStore(database)

    coordinator = RefreshCoordinator(
        source=source,
        store=store,
        evaluator=evaluator,
        broadcaster=broadcaster,
        fetch_timeout=feed.fetch_timeout,
        snapshots=snapshots,
    )
    service = PriceFeedService(
        supported_assets=feed.supported_assets,
        store=store,
        registry=registry,
        yield_calculator=yield_calculator,
        coordinator=coordinator,
    )
    refresher = PriceRefresher(
        coordinator,
        assets=feed.supported_assets,
        poll_interval=feed.poll_interval,
    )

    return {
        "source": source,
        "store": store,
        "registry": registry,
        "hub": hub,
        "broadcaster": broadcaster,
        "database": database,
        "snapshots": snapshots,
        "coordinator": coordinator,
        "service": service,
        "refresher": refresher,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start components on startup, stop them in reverse order on shutdown."""
    logger = get_logger("pricefeed.main")
    components = app.state.components
    database: PriceDatabase | None = components["database"]

    if database is not None:
        try:
            await database.connect()
            await components["service"].warm_from_snapshots(components["snapshots"])
        except Exception:
            # The cache is best-effort: run without it.
            logger.warning("snapshot_cache_unavailable", exc_info=True)
            components["coordinator"].set_snapshots(None)

    try:
        await components["source"].connect()
    except Exception:
        # Refreshes surface FetchError per asset until the source recovers.
        logger.warning("price_source_connect_failed", exc_info=True)
    await components["broadcaster"].start()
    await components["refresher"].start()

    logger.info("lifespan_started", assets=list(components["service"].supported_assets))

    yield

    await components["refresher"].stop()
    await components["broadcaster"].stop()
    await components["source"].close()
    if database is not None:
        await database.close()

    logger.info("price_feed_stopped")


def build_app(settings: AppSettings) -> FastAPI:
    """Create the FastAPI app with all components attached to app.state."""
    components = _build_components(settings)
    app = create_app(
        lifespan=lifespan,
        hub=components["hub"],
        rate_limiter=RateLimiter(
            points=settings.api.rate_limit_points,
            window=settings.api.rate_limit_window,
        ),
    )
    app.state.settings = settings
    app.state.components = components
    app.state.service = components["service"]
    return app


async def run() -> None:
    """Run the price feed service until interrupted."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("pricefeed.main")

    app = build_app(settings)

    logger.info(
        "starting_price_feed",
        host=settings.api.host,
        port=settings.api.port,
        source=settings.feed.source,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()

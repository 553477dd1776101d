"""Price cache and alert core -- store, alerts, yield, refresh coordination."""

from pricefeed.market_data.alerts import AlertEvaluator, AlertRegistry
from pricefeed.market_data.price_store import PriceStore
from pricefeed.market_data.refresh import RefreshCoordinator
from pricefeed.market_data.refresher import PriceRefresher
from pricefeed.market_data.yield_calculator import YieldCalculator

__all__ = [
    "AlertEvaluator",
    "AlertRegistry",
    "PriceRefresher",
    "PriceStore",
    "RefreshCoordinator",
    "YieldCalculator",
]

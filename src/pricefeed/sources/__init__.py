"""Price source layer -- CoinGecko (aiohttp) and exchange (ccxt) providers."""

from pricefeed.config import AppSettings
from pricefeed.logging import get_logger
from pricefeed.sources.client import PriceSource

logger = get_logger(__name__)


def create_price_source(settings: AppSettings) -> PriceSource:
    """Create the price source selected by PRICEFEED_SOURCE.

    - "coingecko" (default) -> CoinGeckoPriceSource
    - "exchange" -> ExchangePriceSource (ccxt)

    Returns an unconnected source. Caller must await source.connect().
    """
    if settings.feed.source == "exchange":
        from pricefeed.sources.exchange import ExchangePriceSource

        logger.info("price_source_selected", source="exchange", exchange=settings.exchange.exchange_id)
        return ExchangePriceSource(settings.exchange)

    from pricefeed.sources.coingecko import CoinGeckoPriceSource

    logger.info("price_source_selected", source="coingecko")
    return CoinGeckoPriceSource(settings.coingecko)


__all__ = ["PriceSource", "create_price_source"]

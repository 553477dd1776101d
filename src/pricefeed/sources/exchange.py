"""Exchange-backed price source via ccxt async.

Maps each asset id to a spot market symbol and reads the ticker's last price.
"""

from decimal import Decimal

import ccxt.async_support as ccxt_async

from pricefeed.config import ExchangeSettings
from pricefeed.exceptions import FetchError, ValidationError
from pricefeed.logging import get_logger
from pricefeed.models import to_decimal
from pricefeed.sources.client import PriceSource

logger = get_logger(__name__)


class ExchangePriceSource(PriceSource):
    """PriceSource that reads last-trade prices from a ccxt exchange."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings
        exchange_cls = getattr(ccxt_async, settings.exchange_id)
        self._exchange = exchange_cls({"enableRateLimit": True})

    @property
    def exchange(self) -> ccxt_async.Exchange:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    def symbol_for(self, asset: str) -> str:
        """Return the market symbol configured for an asset."""
        symbol = self._settings.symbols.get(asset)
        if symbol is None:
            raise FetchError(asset, "no exchange symbol configured")
        return symbol

    async def connect(self) -> None:
        logger.info("connecting_to_exchange", exchange=self._settings.exchange_id)
        markets = await self._exchange.load_markets()
        logger.info(
            "exchange_connected",
            exchange=self._settings.exchange_id,
            market_count=len(markets),
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. Must be called to avoid leaked sessions."""
        await self._exchange.close()
        logger.info("exchange_connection_closed", exchange=self._settings.exchange_id)

    async def fetch_price(self, asset: str) -> Decimal:
        symbol = self.symbol_for(asset)
        try:
            ticker = await self._exchange.fetch_ticker(symbol)
        except ccxt_async.BaseError as e:
            raise FetchError(asset, f"{type(e).__name__}: {e}") from e

        raw = ticker.get("last") if isinstance(ticker, dict) else None
        try:
            price = to_decimal(raw, "price")
        except ValidationError as e:
            raise FetchError(asset, f"malformed ticker for {symbol}: {e}") from e
        if price <= 0:
            raise FetchError(asset, f"non-positive price {price}")
        return price

"""CoinGecko simple-price client via aiohttp.

GET {base_url}/simple/price?ids=<asset>&vs_currencies=<vs>
returns {"<asset>": {"<vs>": 1800.5}}.
"""

from decimal import Decimal

import aiohttp

from pricefeed.config import CoinGeckoSettings
from pricefeed.exceptions import FetchError, ValidationError
from pricefeed.logging import get_logger
from pricefeed.models import to_decimal
from pricefeed.sources.client import PriceSource

logger = get_logger(__name__)


class CoinGeckoPriceSource(PriceSource):
    """PriceSource backed by the public CoinGecko REST API."""

    def __init__(self, settings: CoinGeckoSettings) -> None:
        self._settings = settings
        self._session: aiohttp.ClientSession | None = None

    async def connect(self) -> None:
        await self._ensure_session()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session
        headers = {"Accept": "application/json"}
        api_key = self._settings.api_key.get_secret_value()
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._session = aiohttp.ClientSession(headers=headers)
        logger.info("coingecko_session_opened", base_url=self._settings.base_url)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.info("coingecko_session_closed")

    async def fetch_price(self, asset: str) -> Decimal:
        session = await self._ensure_session()

        vs = self._settings.vs_currency
        url = f"{self._settings.base_url}/simple/price"
        params = {"ids": asset, "vs_currencies": vs}

        try:
            async with session.get(url, params=params) as resp:
                if resp.status != 200:
                    raise FetchError(asset, f"HTTP {resp.status} from CoinGecko")
                data = await resp.json()
        except aiohttp.ClientError as e:
            raise FetchError(asset, f"request failed: {e}") from e

        return self._parse(asset, vs, data)

    @staticmethod
    def _parse(asset: str, vs: str, data: object) -> Decimal:
        """Extract data[asset][vs] as a positive Decimal."""
        try:
            raw = data[asset][vs]  # type: ignore[index]
        except (KeyError, TypeError) as e:
            raise FetchError(asset, f"malformed response: missing {asset}.{vs}") from e
        try:
            price = to_decimal(raw, "price")
        except ValidationError as e:
            raise FetchError(asset, f"malformed response: {e}") from e
        if price <= 0:
            raise FetchError(asset, f"non-positive price {price}")
        return price

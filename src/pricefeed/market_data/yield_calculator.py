"""Derived yield rate: current price divided by 100."""

from decimal import Context, Decimal

from pricefeed.market_data.price_store import PriceStore

_YIELD_DIVISOR = Decimal("100")
_ZERO = Decimal("0")


class YieldCalculator:
    """Computes the yield rate from the latest stored price.

    Division runs in a private decimal context so that the result does not
    depend on whatever the thread-local context happens to be.
    """

    def __init__(self, store: PriceStore, precision: int = 28) -> None:
        self._store = store
        self._context = Context(prec=precision)

    async def compute(self, asset: str) -> Decimal:
        """Return current.value / 100, or 0 when no price has been recorded."""
        point = await self._store.current(asset)
        if point is None:
            return _ZERO
        return self._context.divide(point.value, _YIELD_DIVISOR)

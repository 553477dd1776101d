"""Abstract price source interface.

The refresh path depends only on this interface, keeping provider-specific
details (HTTP endpoints, ccxt symbols) in the concrete implementations.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class PriceSource(ABC):
    """Abstract base class for external price providers."""

    @abstractmethod
    async def connect(self) -> None:
        """Open sessions / load markets. Called once before the first fetch."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources. Safe to call more than once."""
        ...

    @abstractmethod
    async def fetch_price(self, asset: str) -> Decimal:
        """Fetch the latest price for an asset.

        Raises:
            FetchError: If the provider is unreachable or the response
                cannot be parsed into a price.
        """
        ...

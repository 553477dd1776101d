"""Custom exceptions for the price feed service.

Stale updates are not errors: PriceStore.record reports them through its
boolean return value.
"""


class PriceFeedError(Exception):
    """Base exception for all price feed errors."""


class ValidationError(PriceFeedError):
    """Raised for unsupported assets, bad thresholds or non-positive prices.

    Always raised before any shared state is touched.
    """


class FetchError(PriceFeedError):
    """Raised when the external price source is unavailable or returns garbage."""

    def __init__(self, asset: str, message: str) -> None:
        super().__init__(f"{asset}: {message}")
        self.asset = asset


class FetchTimeoutError(FetchError):
    """Raised when a fetch does not complete within the configured timeout."""

"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedSettings(BaseSettings):
    """Price feed core parameters."""

    model_config = SettingsConfigDict(env_prefix="PRICEFEED_")

    supported_assets: tuple[str, ...] = ("ethereum", "bitcoin")
    source: Literal["coingecko", "exchange"] = "coingecko"
    poll_interval: float = 60.0  # seconds between batch refreshes
    fetch_timeout: float = 10.0  # seconds before a fetch fails with a timeout
    history_limit: int = 10_000  # points kept per asset; 0 disables the cap
    broadcast_queue_size: int = 1000
    cache_enabled: bool = True
    cache_db_path: str = "data/prices.db"

    @field_validator("supported_assets")
    @classmethod
    def _normalise_assets(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        assets = tuple(a.strip().lower() for a in value if a.strip())
        if not assets:
            raise ValueError("at least one supported asset is required")
        return assets


class CoinGeckoSettings(BaseSettings):
    """CoinGecko simple-price API settings."""

    model_config = SettingsConfigDict(env_prefix="COINGECKO_")

    base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    api_key: SecretStr = SecretStr("")


class ExchangeSettings(BaseSettings):
    """ccxt exchange settings for the exchange-backed price source."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    exchange_id: str = "binance"
    symbols: dict[str, str] = {
        "ethereum": "ETH/USDT",
        "bitcoin": "BTC/USDT",
    }


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 3000
    rate_limit_points: int = 10  # requests per window per client
    rate_limit_window: float = 60.0  # seconds


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    feed: FeedSettings = FeedSettings()
    coingecko: CoinGeckoSettings = CoinGeckoSettings()
    exchange: ExchangeSettings = ExchangeSettings()
    api: ApiSettings = ApiSettings()

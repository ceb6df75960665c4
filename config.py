"""
Application settings for the fund site backend.
Values are read from environment variables (or a local .env file).
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Upstream metal price API (GoldAPI)
    silver_api_key: str = ""
    silver_api_url: str = "https://www.goldapi.io/api"
    silver_symbol: str = "XAG"
    silver_currency: str = "EUR"  # currency requested in the API path
    upstream_timeout_seconds: float = 5.0

    # Spot price cache
    price_refresh_interval_seconds: float = 30.0
    price_refresh_jitter: float = 0.2  # +/- fraction of the base interval
    eur_to_usd_rate: float = 1.08  # 1 EUR = 1.08 USD (approximate, fixed)
    default_silver_price: float = 28.50  # EUR per troy ounce

    # Parameter store (empty path = not configured, in-memory fallback)
    database_path: str = ""

    # Default fund parameters
    default_base_fund_value: float = 575000.0
    default_commodity_units: float = 5000.0
    default_reference_unit_price: float = 28.50
    default_base_share_price: float = 1.824

    # S&P 500 index
    sp500_symbol: str = "^GSPC"
    sp500_baseline_price: float = 1697.48  # close on 2013-08-08
    sp500_fallback_price: float = 6713.71
    sp500_cache_seconds: int = 300

    # Server
    admin_cookie_name: str = "admin-token"
    cors_origins: str = "*"
    log_level: str = "INFO"

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""
GoldAPI client for the silver spot price.

The API is asked for a price in the configured currency via the request
path, but it sometimes answers in USD anyway, so the response currency is
checked and converted with a fixed EUR/USD rate before the price is used.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import requests as http_requests

from utils.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

KNOWN_CURRENCIES = ("EUR", "USD")


def detect_currency(data: Dict[str, Any]) -> Optional[str]:
    """Currency of a GoldAPI payload, from 'currency' or inferred from 'symbol' (e.g. 'FX_IDC:XAGUSD')."""
    currency = data.get("currency")
    if isinstance(currency, str) and currency.strip():
        return currency.strip().upper()
    symbol = data.get("symbol")
    if isinstance(symbol, str):
        symbol = symbol.strip().upper()
        for cur in KNOWN_CURRENCIES:
            if symbol.endswith(cur):
                return cur
    return None


def convert_price(price: float, from_currency: str, to_currency: str, eur_to_usd: float) -> float:
    if from_currency == to_currency:
        return price
    if from_currency == "USD" and to_currency == "EUR":
        return price / eur_to_usd
    if from_currency == "EUR" and to_currency == "USD":
        return price * eur_to_usd
    raise ValueError(f"Cannot convert {from_currency} to {to_currency}")


class SilverPriceClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.goldapi.io/api",
        metal: str = "XAG",
        currency: str = "EUR",
        eur_to_usd: float = 1.08,
        timeout: float = 5.0,
        session: Optional[http_requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.metal = metal
        self.currency = currency.upper()
        self.eur_to_usd = eur_to_usd
        self.timeout = timeout
        self.session = session or http_requests.Session()

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.metal}/{self.currency}"

    def normalize(self, data: Any) -> Result[float]:
        """Extract the price from a payload, converted to the requested currency."""
        if not isinstance(data, dict):
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, "response body is not an object")
        price = data.get("price")
        if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price) or price <= 0:
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, f"missing or invalid price: {price!r}")

        got = detect_currency(data) or self.currency
        if got != self.currency:
            try:
                converted = convert_price(float(price), got, self.currency, self.eur_to_usd)
            except ValueError as e:
                return Err(ErrorKind.UPSTREAM_UNAVAILABLE, str(e))
            logger.info(f"GoldAPI returned {got} instead of {self.currency}: {price} -> {converted:.4f}")
            return Ok(converted)
        return Ok(float(price))

    def fetch(self) -> Result[float]:
        if not self.api_key:
            return Err(ErrorKind.NOT_CONFIGURED, "SILVER_API_KEY is not set")
        try:
            resp = self.session.get(
                self.url,
                headers={"x-access-token": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except http_requests.RequestException as e:
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, f"request failed: {e}")

        if resp.status_code != 200:
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, f"GoldAPI error: {resp.status_code} {resp.reason}")
        try:
            data = resp.json()
        except ValueError:
            return Err(ErrorKind.UPSTREAM_UNAVAILABLE, "response body is not JSON")
        return self.normalize(data)

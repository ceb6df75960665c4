from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

import pandas as pd
import yfinance as yf

from utils.cache import TTLCache

logger = logging.getLogger(__name__)

# period -> (yfinance period to download, window to keep)
PERIODS = {
    "1d": ("5d", pd.Timedelta(days=1)),
    "5d": ("5d", pd.Timedelta(days=5)),
    "7d": ("1mo", pd.Timedelta(days=7)),
    "14d": ("1mo", pd.Timedelta(days=14)),
    "1y": ("1y", pd.DateOffset(years=1)),
    "2y": ("2y", pd.DateOffset(years=2)),
    "5y": ("5y", pd.DateOffset(years=5)),
}


def _fetch_hist_once(symbol: str, period: str, interval: str = "1d") -> pd.DataFrame:
    t = yf.Ticker(symbol)
    df = t.history(period=period, interval=interval, actions=False)
    if df is None or df.empty:
        return pd.DataFrame()
    df = df.rename(columns={c: c.title() for c in df.columns})
    return df.reset_index().rename(columns={"Date": "date", "Datetime": "date"})


def fetch_last_price(symbol: str) -> float:
    """
    Latest index level. Tries fast_info; falls back to the last daily close.
    Raises ValueError when neither is available.
    """
    t = yf.Ticker(symbol)
    price = None
    try:
        fi = t.fast_info or {}
        price = fi.get("last_price") or fi.get("lastPrice") or fi.get("regularMarketPrice")
    except Exception as e:
        logger.debug(f"fast_info failed for {symbol}: {e}")

    if not price:
        h = t.history(period="5d", interval="1d", actions=False)
        if h is not None and not h.empty:
            price = float(h["Close"].iloc[-1])

    if not price:
        raise ValueError(f"No price found for symbol: {symbol}")
    return float(price)


def filter_by_period(df: pd.DataFrame, period: str, now: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """Keep rows whose date falls within `period` of `now`. Unknown periods are returned unfiltered."""
    if period not in PERIODS or df.empty:
        return df
    dates = pd.to_datetime(df["date"], utc=True)
    now = now if now is not None else pd.Timestamp.now(tz="UTC")
    start = now - PERIODS[period][1]
    return df.loc[dates >= start]


class IndexQuoteService:
    """S&P 500 level normalized against a fixed baseline close."""

    def __init__(self, symbol: str, baseline_price: float, fallback_price: float, cache: TTLCache):
        self.symbol = symbol
        self.baseline_price = baseline_price
        self.fallback_price = fallback_price
        self.cache = cache

    def quote(self) -> Dict[str, Any]:
        key = f"last:{self.symbol}"
        cached = self.cache.get(key)
        if cached is not None:
            price, source = cached, "cache"
        else:
            try:
                price = fetch_last_price(self.symbol)
                source = "yahoo"
                self.cache.set(key, price)
            except Exception as e:
                logger.warning(f"S&P 500 price fetch failed, using fallback {self.fallback_price}: {e}")
                price, source = self.fallback_price, "fallback"

        return {
            "success": True,
            "actualPrice": price,
            "normalizedPrice": price / self.baseline_price,
            "baselinePrice": self.baseline_price,
            "currency": "USD",
            "unit": "index_points",
            "timestamp": int(time.time() * 1000),
            "source": source,
        }

    def history(self, period: str) -> List[Dict[str, Any]]:
        """Daily closes for `period`, normalized. Empty list when Yahoo has nothing."""
        if period not in PERIODS:
            raise ValueError(f"Unsupported period: {period}. Expected one of {', '.join(PERIODS)}")
        key = f"hist:{self.symbol}:{period}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            df = _fetch_hist_once(self.symbol, PERIODS[period][0])
        except Exception as e:
            logger.warning(f"S&P 500 history fetch failed for {period}: {e}")
            return []
        if df.empty:
            return []

        df = filter_by_period(df, period)
        out = [
            {
                "date": pd.Timestamp(row.date).isoformat(),
                "close": float(row.Close),
                "normalized": float(row.Close) / self.baseline_price,
            }
            for row in df.itertuples(index=False)
        ]
        self.cache.set(key, out)
        return out

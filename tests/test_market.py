"""
Tests for the S&P 500 index quote service (yfinance mocked).
"""
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from fakes import FakeClock
from services.market import IndexQuoteService, fetch_last_price, filter_by_period
from utils.cache import TTLCache


def _history(days=30, end="2026-10-16", close_start=6000.0):
    dates = pd.date_range(end=pd.Timestamp(end, tz="America/New_York"), periods=days, freq="D", name="Date")
    close = [close_start + i for i in range(days)]
    return pd.DataFrame({"Open": close, "High": close, "Low": close, "Close": close, "Volume": 1}, index=dates)


def _ticker(last_price=None, history=None):
    t = MagicMock()
    t.fast_info = {"last_price": last_price} if last_price else {}
    t.history.return_value = history if history is not None else pd.DataFrame()
    return t


def _service(clock=None):
    return IndexQuoteService("^GSPC", 1697.48, 6713.71, TTLCache(ttl_seconds=300, clock=clock or FakeClock()))


class TestFetchLastPrice:

    @patch("services.market.yf.Ticker")
    def test_fast_info(self, ticker):
        ticker.return_value = _ticker(last_price=6800.5)
        assert fetch_last_price("^GSPC") == 6800.5

    @patch("services.market.yf.Ticker")
    def test_falls_back_to_history(self, ticker):
        ticker.return_value = _ticker(history=_history(days=5))
        assert fetch_last_price("^GSPC") == 6004.0

    @patch("services.market.yf.Ticker")
    def test_nothing_available(self, ticker):
        ticker.return_value = _ticker()
        with pytest.raises(ValueError):
            fetch_last_price("^GSPC")


class TestIndexQuoteService:

    @patch("services.market.yf.Ticker")
    def test_quote_is_normalized(self, ticker):
        ticker.return_value = _ticker(last_price=3394.96)
        quote = _service().quote()
        assert quote["source"] == "yahoo"
        assert quote["actualPrice"] == 3394.96
        assert quote["normalizedPrice"] == pytest.approx(2.0)
        assert quote["baselinePrice"] == 1697.48

    @patch("services.market.yf.Ticker")
    def test_quote_is_cached(self, ticker):
        ticker.return_value = _ticker(last_price=6800.0)
        clock = FakeClock()
        service = _service(clock)
        service.quote()
        assert service.quote()["source"] == "cache"
        assert ticker.call_count == 1
        clock.advance(301)
        assert service.quote()["source"] == "yahoo"
        assert ticker.call_count == 2

    @patch("services.market.yf.Ticker")
    def test_quote_fallback(self, ticker):
        ticker.side_effect = RuntimeError("yahoo down")
        quote = _service().quote()
        assert quote["success"] is True
        assert quote["source"] == "fallback"
        assert quote["actualPrice"] == 6713.71

    @patch("services.market.yf.Ticker")
    def test_history_for_period(self, ticker):
        ticker.return_value = _ticker(history=_history(days=30, end="2026-10-16"))
        with patch("services.market.filter_by_period", side_effect=lambda df, p: filter_by_period(
                df, p, now=pd.Timestamp("2026-10-17", tz="UTC"))):
            rows = _service().history("7d")
        assert ticker.return_value.history.call_args.kwargs["period"] == "1mo"
        assert len(rows) == 7
        assert rows[-1]["close"] == 6029.0
        assert rows[-1]["normalized"] == pytest.approx(6029.0 / 1697.48)

    def test_unsupported_period(self):
        with pytest.raises(ValueError):
            _service().history("3w")

    @patch("services.market.yf.Ticker")
    def test_history_failure_is_empty(self, ticker):
        ticker.side_effect = RuntimeError("yahoo down")
        assert _service().history("1y") == []


class TestFilterByPeriod:

    def test_unknown_period_is_unfiltered(self):
        df = pd.DataFrame({"date": pd.date_range("2026-01-01", periods=3, tz="UTC")})
        assert filter_by_period(df, "max") is df

    def test_window(self):
        df = pd.DataFrame({"date": pd.date_range("2026-10-01", periods=10, freq="D", tz="UTC")})
        out = filter_by_period(df, "5d", now=pd.Timestamp("2026-10-10", tz="UTC"))
        assert list(out["date"].dt.day) == [5, 6, 7, 8, 9, 10]
